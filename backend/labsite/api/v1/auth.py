"""
Admin authentication endpoints.

Username/password login issues an opaque session token stored server-side
and delivered in the ``admin_session`` cookie. Failed logins are counted
per client IP; too many failures lock the IP out for a while.
"""

from fastapi import APIRouter, HTTPException, Request, Response, status

from labsite.api.audit import log_security_event
from labsite.api.dependencies import DatabaseSession, OptionalAdmin, SessionToken
from labsite.core.config import settings
from labsite.core.security import (
    SESSION_COOKIE_NAME,
    burn_password_check,
    get_client_ip,
    get_user_agent,
    sanitize_input,
    verify_password,
)
from labsite.repositories.admin import AdminRepository
from labsite.schemas.auth import AdminUserOut, LoginRequest, LoginResponse, SessionStatus
from labsite.schemas.common import MessageResponse


router = APIRouter()

INVALID_CREDENTIALS = "Invalid credentials"


@router.post("/admin/auth/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: DatabaseSession,
) -> LoginResponse:
    """
    Sign an admin in.

    Returns:
        LoginResponse with the redirect target and the admin account

    Raises:
        HTTPException 400: If the username is empty after sanitising
        HTTPException 401: If the credentials are wrong (generic message)
        HTTPException 429: If the client IP is locked out

    Security:
        - Unknown usernames still pay for a bcrypt hash so timing does not
          reveal which accounts exist
        - Every outcome is written to the admin log
    """
    username = sanitize_input(body.username)
    if not username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username and password are required",
        )

    ip = get_client_ip(request)
    repo = AdminRepository(db)

    remaining = await repo.get_lockout_remaining(ip)
    if remaining is not None:
        await log_security_event(
            db, request, "rate_limit_exceeded", username=username,
            details={"remainingMinutes": remaining},
        )
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many failed login attempts. Try again in {remaining} minutes.",
            headers={"Retry-After": str(remaining * 60)},
        )

    user = await repo.get_by_username(username)
    if user is None or not user.is_active:
        burn_password_check(body.password)
        authenticated = False
        reason = "unknown_user" if user is None else "inactive_user"
    else:
        authenticated = verify_password(body.password, user.password_hash)
        reason = "wrong_password"

    if not authenticated:
        attempt = await repo.register_failure(ip)
        await log_security_event(
            db, request, "login_failure", username=username,
            details={"reason": reason, "failedAttempts": attempt.failed_attempts},
        )
        # Persist the failure counter before the error unwinds the session
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
        )

    await repo.clear_failures(ip)
    await repo.record_login(user)
    admin_session = await repo.create_session(user.id, ip, get_user_agent(request))
    await log_security_event(db, request, "login_success", username=username)

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=admin_session.token,
        max_age=settings.session_duration_hours * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )
    return LoginResponse(user=AdminUserOut.model_validate(user))


@router.get("/admin/auth/session", response_model=SessionStatus)
async def check_session(
    request: Request,
    db: DatabaseSession,
    token: SessionToken,
    admin: OptionalAdmin,
) -> SessionStatus:
    """
    Report whether the caller holds a valid admin session.

    A valid session is slid forward by the full session duration.
    """
    if admin is None:
        if token:
            await log_security_event(db, request, "session_expired")
        return SessionStatus(authenticated=False)

    await AdminRepository(db).extend_session(admin.session)
    return SessionStatus(authenticated=True, user=AdminUserOut.model_validate(admin.user))


@router.post("/admin/auth/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    db: DatabaseSession,
    token: SessionToken,
    admin: OptionalAdmin,
) -> MessageResponse:
    if token:
        await AdminRepository(db).deactivate_session(token)

    username = admin.user.username if admin is not None else None
    await log_security_event(db, request, "logout", username=username)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return MessageResponse(message="Logged out successfully")
