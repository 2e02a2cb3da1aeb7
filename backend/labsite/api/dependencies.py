"""
FastAPI dependency functions.

Provides reusable dependencies for route handlers: database sessions,
admin session authentication, the cron/API key guard, and the outbound
service clients (overridable in tests through ``app.dependency_overrides``).
"""

import secrets
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from labsite.core.config import settings
from labsite.core.database import get_db
from labsite.core.security import SESSION_COOKIE_NAME, is_valid_session_token
from labsite.models.admin import AdminSession, AdminUser
from labsite.repositories.admin import AdminRepository
from labsite.services.cve_feed import CVEFeedService
from labsite.services.email import MailgunEmailService
from labsite.services.forums import ForumService
from labsite.services.geolocation import GeolocationService
from labsite.services.latest_tools import LatestToolsService
from labsite.services.tools import ToolsService


# Bearer is optional: browsers authenticate with the session cookie
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AdminContext:
    """Authenticated admin and the session that authenticated them."""
    user: AdminUser
    session: AdminSession


def get_session_token(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[str]:
    """
    Extract the admin session token.

    The ``admin_session`` cookie wins; an ``Authorization: Bearer`` header
    is accepted for API clients.
    """
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    return token


async def get_optional_admin(
    db: Annotated[AsyncSession, Depends(get_db)],
    token: Annotated[Optional[str], Depends(get_session_token)],
) -> Optional[AdminContext]:
    """
    Resolve the admin session if one is presented, else None.

    Used by public endpoints that show more to admins (e.g. machine
    writeups).
    """
    if not is_valid_session_token(token):
        return None
    found = await AdminRepository(db).get_valid_session(token)
    if found is None:
        return None
    admin_session, user = found
    return AdminContext(user=user, session=admin_session)


async def get_current_admin(
    admin: Annotated[Optional[AdminContext], Depends(get_optional_admin)],
) -> AdminContext:
    """
    Dependency for admin-only routes.

    Raises:
        HTTPException 401: If no valid, active session is presented

    Example:
        @router.delete("/htb-stats")
        async def reset(admin: CurrentAdmin, db: DatabaseSession):
            ...
    """
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Admin access required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return admin


def has_valid_api_key(request: Request) -> bool:
    """True when ``X-Admin-Key`` matches the configured admin API key."""
    expected = settings.admin_api_key
    provided = request.headers.get("X-Admin-Key")
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_admin_or_api_key(
    request: Request,
    admin: Annotated[Optional[AdminContext], Depends(get_optional_admin)],
) -> Optional[AdminContext]:
    """
    Allow either an admin session or a cron caller with ``X-Admin-Key``.

    Returns:
        The AdminContext when a session was used, None for key callers
    """
    if admin is not None:
        return admin
    if has_valid_api_key(request):
        return None
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized - Admin access required",
    )


async def require_api_key(request: Request) -> None:
    if not has_valid_api_key(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - invalid admin key",
        )


def get_email_service() -> MailgunEmailService:
    return MailgunEmailService()


def get_geolocation_service() -> GeolocationService:
    return GeolocationService()


def get_tools_service() -> ToolsService:
    return ToolsService()


def get_latest_tools_service() -> LatestToolsService:
    return LatestToolsService()


def get_cve_service() -> CVEFeedService:
    return CVEFeedService()


def get_forum_service() -> ForumService:
    return ForumService()


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
SessionToken = Annotated[Optional[str], Depends(get_session_token)]
CurrentAdmin = Annotated[AdminContext, Depends(get_current_admin)]
OptionalAdmin = Annotated[Optional[AdminContext], Depends(get_optional_admin)]
AdminOrApiKey = Annotated[Optional[AdminContext], Depends(require_admin_or_api_key)]
EmailService = Annotated[MailgunEmailService, Depends(get_email_service)]
Geolocation = Annotated[GeolocationService, Depends(get_geolocation_service)]
ToolsFeed = Annotated[ToolsService, Depends(get_tools_service)]
LatestToolsFeed = Annotated[LatestToolsService, Depends(get_latest_tools_service)]
CVEFeed = Annotated[CVEFeedService, Depends(get_cve_service)]
ForumFeed = Annotated[ForumService, Depends(get_forum_service)]
