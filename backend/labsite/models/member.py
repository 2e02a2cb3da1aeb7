"""
Supporter members and the one-time passcodes they use to unlock writeups.
"""

from sqlalchemy import Boolean, Column, Integer, String

from labsite.models.base import Base, ModelMixin, utc_now_iso


class Member(Base, ModelMixin):
    """
    Supporter record.

    Only members with ``status == "active"`` may unlock writeups. Location
    fields are filled from IP geolocation on first unlock.
    """

    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    tier_name = Column(String, nullable=True)
    country = Column(String, nullable=True)
    region = Column(String, nullable=True)
    city = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    subscribed_at = Column(String, nullable=False, default=utc_now_iso, index=True)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class OTPVerification(Base, ModelMixin):
    """
    Issued writeup passcode.

    ``otp_code`` is the SHA-256 hex digest of the 6-digit code; the code
    itself is never stored. A row can be consumed once (``verified``) and
    only before ``expires_at``.
    """

    __tablename__ = "otp_verifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, index=True)
    otp_code = Column(String(64), nullable=False)
    expires_at = Column(String, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False, default=utc_now_iso, index=True)
