"""
Security helpers for authentication and request hygiene.

Provides bcrypt password hashing, opaque admin session tokens, writeup
OTP generation/hashing, input sanitisation and validation, client IP
extraction, and security-event records for the audit log.
"""

import hashlib
import ipaddress
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import bcrypt
from fastapi import Request

from labsite.core.config import settings


SESSION_COOKIE_NAME = "admin_session"

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,20}$")
SESSION_TOKEN_PATTERN = re.compile(r"^[a-f0-9]{64}$")
_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
_SANITIZE_CHARS = re.compile(r"[<>\"'&]")

# Event type -> severity recorded with every security event
SEVERITY_LEVELS: Dict[str, str] = {
    "login_success": "low",
    "logout": "low",
    "login_attempt": "medium",
    "admin_created": "medium",
    "session_expired": "medium",
    "login_failure": "high",
    "setup_failure": "high",
    "rate_limit_exceeded": "high",
}


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        bcrypt hash string (salt embedded)
    """
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        return bcrypt.checkpw(
            _password_bytes(plain_password),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False


def burn_password_check(password: str) -> None:
    """
    Spend the same time as a real verification.

    Called when the username does not exist so response timing does not
    reveal which usernames are valid.
    """
    bcrypt.hashpw(_password_bytes(password or "dummy"), bcrypt.gensalt(rounds=settings.bcrypt_rounds))


def generate_session_token() -> str:
    """Return a new 64-character hex session token."""
    return secrets.token_hex(32)


def is_valid_session_token(token: Optional[str]) -> bool:
    return bool(token) and SESSION_TOKEN_PATTERN.fullmatch(token) is not None


def generate_otp() -> str:
    """Return a 6-digit numeric one-time passcode from a CSPRNG."""
    return str(secrets.randbelow(900000) + 100000)


def hash_otp(otp: str) -> str:
    """SHA-256 hex digest of an OTP; only the digest is ever stored."""
    return hashlib.sha256(otp.strip().encode("utf-8")).hexdigest()


def sanitize_input(value: Any) -> str:
    """Strip HTML-significant characters and surrounding whitespace."""
    if not isinstance(value, str):
        return ""
    return _SANITIZE_CHARS.sub("", value).strip()


def validate_username(username: str) -> bool:
    return USERNAME_PATTERN.fullmatch(username or "") is not None


def validate_password_strength(password: str) -> List[str]:
    """
    Check an admin password against the strength policy.

    Returns:
        List of human-readable problems; empty when the password is strong.
    """
    errors: List[str] = []
    password = password or ""
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL_CHARS.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def is_trusted_proxy(host: Optional[str]) -> bool:
    """True when ``host`` matches an entry of ``settings.trusted_proxies``."""
    if not host:
        return False
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        address = None

    for entry in settings.trusted_proxies:
        if host == entry:
            return True
        if address is not None and "/" in entry and address in ipaddress.ip_network(entry, strict=False):
            return True
    return False


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from a request.

    The socket peer is the client unless it is a trusted proxy. Behind a
    trusted proxy, X-Forwarded-For is read from the right and the first
    untrusted hop wins; X-Real-IP and CF-Connecting-IP come next.
    """
    peer = request.client.host if request.client else None
    if not is_trusted_proxy(peer):
        return peer or "unknown"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        for hop in reversed(hops):
            if not is_trusted_proxy(hop):
                return hop
        if hops:
            return hops[0]

    for header in ("X-Real-IP", "CF-Connecting-IP"):
        value = request.headers.get(header)
        if value:
            return value.strip()

    return peer


def get_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent", "unknown")


def create_security_event(
    event_type: str,
    ip: str,
    user_agent: str,
    username: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build a security event record for the admin audit log.

    Args:
        event_type: login_attempt, login_success, login_failure, logout,
            session_expired or rate_limit_exceeded
        ip: Client IP address
        user_agent: Client user agent
        username: Username involved, if any
        details: Extra context

    Returns:
        Dictionary with the event fields, a timestamp and a severity
    """
    event: Dict[str, Any] = {
        "type": event_type,
        "ip": ip,
        "userAgent": user_agent,
    }
    if username is not None:
        event["username"] = username
    if details:
        event["details"] = details
    event["timestamp"] = datetime.now(timezone.utc).isoformat()
    event["severity"] = SEVERITY_LEVELS.get(event_type, "medium")
    return event


def slugify(value: str) -> str:
    """Lower-case a name and join whitespace-separated words with dashes."""
    return re.sub(r"\s+", "-", value.strip().lower())


def slugify_title(value: str) -> str:
    """Slug for room titles: every non-alphanumeric run becomes one dash."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return slug.strip("-")


def is_private_ip(ip: str) -> bool:
    """True for loopback, link-local and private addresses (skip geolocation)."""
    if not ip or ip in {"unknown", "localhost"}:
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return address.is_private or address.is_loopback or address.is_link_local
