"""
Member, OTP and newsletter repositories.
"""

from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from labsite.models.base import utc_now_iso
from labsite.models.member import Member, OTPVerification
from labsite.models.newsletter import NewsletterSubscriber


# Tier names that mark a paying supporter
SUPPORTER_TIER_KEYWORDS = ("sudo", "ring", "elite", "premium")


class MemberRepository:
    """
    Repository for supporter members and their writeup OTPs.

    Emails are compared case-insensitively; they are stored lower-cased.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Optional[Member]:
        stmt = select(Member).where(Member.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, email: str, **fields: Any) -> Member:
        """
        Create a member.

        Raises:
            ValueError: If the email is already registered
        """
        email = email.strip().lower()
        duplicate = f"Member '{email}' already exists"
        if await self.get_by_email(email) is not None:
            raise ValueError(duplicate)
        member = Member(email=email, **fields)
        try:
            async with self.session.begin_nested():
                self.session.add(member)
        except IntegrityError as exc:
            raise ValueError(duplicate) from exc
        await self.session.refresh(member)
        return member

    async def list_members(self) -> list[Member]:
        stmt = select(Member).order_by(Member.subscribed_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def latest_supporters(self, limit: int = 4) -> list[Member]:
        """Newest active members that have a display name."""
        stmt = (
            select(Member)
            .where(
                Member.status == "active",
                Member.name.is_not(None),
                Member.name != "",
            )
            .order_by(Member.subscribed_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def tier_supporters(self) -> list[Member]:
        """Active named members on a supporter tier, newest first."""
        tier = func.lower(Member.tier_name)
        stmt = (
            select(Member)
            .where(
                Member.status == "active",
                Member.name.is_not(None),
                Member.name != "",
                or_(*(tier.contains(keyword) for keyword in SUPPORTER_TIER_KEYWORDS)),
            )
            .order_by(Member.subscribed_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def all_emails(self) -> list[str]:
        result = await self.session.execute(select(Member.email))
        return list(result.scalars().all())

    async def update_member(self, member: Member, **fields: Any) -> Member:
        for key, value in fields.items():
            setattr(member, key, value)
        await self.session.flush()
        return member

    # ------------------------------------------------------------------
    # OTP
    # ------------------------------------------------------------------

    async def otp_issued_since(self, email: str, since: str) -> bool:
        """True when an OTP for ``email`` was created at or after ``since``."""
        stmt = (
            select(OTPVerification.id)
            .where(
                OTPVerification.email == email.strip().lower(),
                OTPVerification.created_at >= since,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def create_otp(self, email: str, otp_hash: str, expires_at: str) -> OTPVerification:
        otp = OTPVerification(
            email=email.strip().lower(),
            otp_code=otp_hash,
            expires_at=expires_at,
            verified=False,
        )
        self.session.add(otp)
        await self.session.flush()
        return otp

    async def find_usable_otp(self, email: str, otp_hash: str) -> Optional[OTPVerification]:
        """
        Newest OTP row matching email and hash that is unexpired and unused.
        """
        stmt = (
            select(OTPVerification)
            .where(
                OTPVerification.email == email.strip().lower(),
                OTPVerification.otp_code == otp_hash,
                OTPVerification.expires_at > utc_now_iso(),
                OTPVerification.verified.is_(False),
            )
            .order_by(OTPVerification.created_at.desc(), OTPVerification.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def consume_otp(self, otp: OTPVerification) -> bool:
        """
        Mark ``otp`` used if it is still unused.

        The check and the write are one UPDATE, so only one of several
        concurrent callers gets True.
        """
        stmt = (
            update(OTPVerification)
            .where(OTPVerification.id == otp.id, OTPVerification.verified.is_(False))
            .values(verified=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class NewsletterRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def email_exists(self, email: str) -> bool:
        stmt = select(NewsletterSubscriber.id).where(
            NewsletterSubscriber.email == email.strip().lower()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def subscribe(
        self,
        name: str,
        email: str,
        country: str,
        ip_address: Optional[str] = None,
    ) -> NewsletterSubscriber:
        """
        Store a newsletter signup.

        Raises:
            ValueError: If the email is already subscribed
        """
        email = email.strip().lower()
        duplicate = f"'{email}' is already subscribed"
        if await self.email_exists(email):
            raise ValueError(duplicate)
        subscriber = NewsletterSubscriber(
            name=name.strip(),
            email=email,
            country=country.strip(),
            ip_address=ip_address,
        )
        # The unique index still decides when two signups race past the check
        try:
            async with self.session.begin_nested():
                self.session.add(subscriber)
        except IntegrityError as exc:
            raise ValueError(duplicate) from exc
        await self.session.refresh(subscriber)
        return subscriber

    async def list_subscribers(self) -> list[NewsletterSubscriber]:
        stmt = select(NewsletterSubscriber).order_by(NewsletterSubscriber.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def all_emails(self) -> list[str]:
        result = await self.session.execute(select(NewsletterSubscriber.email))
        return list(result.scalars().all())
