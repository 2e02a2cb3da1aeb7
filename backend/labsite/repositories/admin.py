"""
Admin repository for accounts, sessions and login lockouts.

Provides the data access layer behind admin authentication. Like every
repository here it flushes but never commits; the request's ``get_db``
dependency owns the transaction.
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from labsite.core.config import settings
from labsite.core.security import generate_session_token
from labsite.models.admin import AdminLoginAttempt, AdminSession, AdminUser
from labsite.models.base import parse_iso, utc_iso_after, utc_now_iso


class AdminRepository:
    """
    Repository for admin data access.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_by_username(self, username: str) -> Optional[AdminUser]:
        stmt = select(AdminUser).where(AdminUser.username == username)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> Optional[AdminUser]:
        return await self.session.get(AdminUser, user_id)

    async def username_exists(self, username: str) -> bool:
        return await self.get_by_username(username) is not None

    async def count_users(self) -> int:
        result = await self.session.execute(select(func.count(AdminUser.id)))
        return int(result.scalar_one())

    async def list_users(self) -> list[AdminUser]:
        stmt = select(AdminUser).order_by(AdminUser.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_user(self, username: str, password_hash: str) -> AdminUser:
        """
        Create a new admin account.

        Args:
            username: Unique login name (validated by the caller)
            password_hash: bcrypt hash of the password

        Returns:
            Created AdminUser with its generated id

        Raises:
            ValueError: If the username is already taken
        """
        duplicate = f"Admin user '{username}' already exists"
        if await self.username_exists(username):
            raise ValueError(duplicate)

        user = AdminUser(username=username, password_hash=password_hash, is_active=True)
        # A concurrent insert of the same username fails the savepoint only
        try:
            async with self.session.begin_nested():
                self.session.add(user)
        except IntegrityError as exc:
            raise ValueError(duplicate) from exc
        await self.session.refresh(user)
        return user

    async def set_active(self, user_id: int, is_active: bool) -> Optional[AdminUser]:
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        user.is_active = is_active
        if not is_active:
            # A disabled admin loses every open session immediately
            await self.session.execute(
                AdminSession.__table__.update()
                .where(AdminSession.user_id == user_id)
                .values(is_active=False)
            )
        await self.session.flush()
        return user

    async def record_login(self, user: AdminUser) -> None:
        user.last_login = utc_now_iso()
        await self.session.flush()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(
        self,
        user_id: int,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> AdminSession:
        """
        Open a new session for an admin.

        Args:
            user_id: Owner of the session
            ip_address: Client IP recorded for auditing
            user_agent: Client user agent recorded for auditing

        Returns:
            AdminSession with a fresh 64-hex token valid for
            ``settings.session_duration_hours``
        """
        admin_session = AdminSession(
            token=generate_session_token(),
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            expires_at=utc_iso_after(hours=settings.session_duration_hours),
            is_active=True,
        )
        self.session.add(admin_session)
        await self.session.flush()
        return admin_session

    async def get_valid_session(
        self, token: str
    ) -> Optional[Tuple[AdminSession, AdminUser]]:
        """
        Look up an active, unexpired session whose owner is active.

        Returns:
            (session, user) tuple, or None when the token is not usable
        """
        stmt = (
            select(AdminSession, AdminUser)
            .join(AdminUser, AdminUser.id == AdminSession.user_id)
            .where(
                AdminSession.token == token,
                AdminSession.is_active.is_(True),
                AdminSession.expires_at > utc_now_iso(),
                AdminUser.is_active.is_(True),
            )
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def extend_session(self, admin_session: AdminSession) -> None:
        admin_session.expires_at = utc_iso_after(hours=settings.session_duration_hours)
        await self.session.flush()

    async def deactivate_session(self, token: str) -> bool:
        stmt = select(AdminSession).where(AdminSession.token == token)
        result = await self.session.execute(stmt)
        admin_session = result.scalar_one_or_none()
        if admin_session is None:
            return False
        admin_session.is_active = False
        await self.session.flush()
        return True

    async def cleanup_sessions(self) -> int:
        """
        Delete sessions that are expired or were deactivated.

        Returns:
            Number of deleted rows
        """
        stmt = delete(AdminSession).where(
            or_(
                AdminSession.expires_at <= utc_now_iso(),
                AdminSession.is_active.is_(False),
            )
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0

    async def session_stats(self) -> dict[str, int]:
        now = utc_now_iso()
        total = await self.session.scalar(select(func.count(AdminSession.id)))
        active = await self.session.scalar(
            select(func.count(AdminSession.id)).where(
                AdminSession.is_active.is_(True),
                AdminSession.expires_at > now,
            )
        )
        expired = await self.session.scalar(
            select(func.count(AdminSession.id)).where(AdminSession.expires_at <= now)
        )
        return {"total": total or 0, "active": active or 0, "expired": expired or 0}

    # ------------------------------------------------------------------
    # Login lockout
    # ------------------------------------------------------------------

    async def get_lockout_remaining(self, ip_address: str) -> Optional[int]:
        """
        Minutes left on an IP's lockout, or None when it is not locked.

        Partial minutes round up, so a lockout with 30 seconds left
        reports 1 minute.
        """
        attempt = await self.session.get(AdminLoginAttempt, ip_address)
        if attempt is None or not attempt.locked_until:
            return None
        remaining = parse_iso(attempt.locked_until) - datetime.now(timezone.utc)
        seconds = remaining.total_seconds()
        if seconds <= 0:
            return None
        return int(-(-seconds // 60))

    async def register_failure(self, ip_address: str) -> AdminLoginAttempt:
        """
        Count a failed login for an IP and lock it once the limit is hit.

        A counter whose previous lockout already expired starts over.
        """
        attempt = await self.session.get(AdminLoginAttempt, ip_address)
        now = utc_now_iso()
        if attempt is None:
            attempt = AdminLoginAttempt(ip_address=ip_address, failed_attempts=0)
            self.session.add(attempt)
        elif attempt.locked_until and attempt.locked_until <= now:
            attempt.failed_attempts = 0
            attempt.locked_until = None

        attempt.failed_attempts = (attempt.failed_attempts or 0) + 1
        attempt.last_attempt = now
        if attempt.failed_attempts >= settings.max_login_attempts:
            attempt.locked_until = utc_iso_after(minutes=settings.lockout_minutes)

        await self.session.flush()
        return attempt

    async def clear_failures(self, ip_address: str) -> None:
        await self.session.execute(
            delete(AdminLoginAttempt).where(AdminLoginAttempt.ip_address == ip_address)
        )
        await self.session.flush()
