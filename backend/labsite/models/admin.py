"""
Admin user, session and login-lockout models.

Admins sign in with username/password and receive an opaque session token
stored server-side; failed logins are counted per client IP.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String

from labsite.models.base import Base, ModelMixin, utc_now_iso


class AdminUser(Base, ModelMixin):
    """
    Admin account for the management panel.

    Attributes:
        id: Integer primary key
        username: Unique login name
        password_hash: bcrypt hash (never expose through the API)
        is_active: Disabled accounts cannot sign in or use sessions
        last_login: ISO timestamp of the last successful login
        created_at: ISO timestamp of account creation
    """

    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(
        String,
        nullable=False,
        unique=True,
        index=True,
        doc="Unique username for authentication"
    )
    password_hash = Column(
        String,
        nullable=False,
        doc="bcrypt-hashed password (never store plaintext)"
    )
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(String, nullable=True)
    created_at = Column(String, nullable=False, default=utc_now_iso)

    def __repr__(self) -> str:
        return f"AdminUser(id={self.id!r}, username={self.username!r})"


class AdminSession(Base, ModelMixin):
    """
    Server-side admin session keyed by a 64-character hex token.

    A session is valid while ``is_active`` is set and ``expires_at`` is in
    the future; each successful session check moves ``expires_at`` forward.
    """

    __tablename__ = "admin_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("admin_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    expires_at = Column(String, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(String, nullable=False, default=utc_now_iso)


class AdminLoginAttempt(Base, ModelMixin):
    """Failed-login counter and lockout deadline for one client IP."""

    __tablename__ = "admin_login_attempts"

    ip_address = Column(String, primary_key=True)
    failed_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(String, nullable=True)
    last_attempt = Column(String, nullable=False, default=utc_now_iso)
