"""
First-run setup endpoints.

Creating the first admin account and the database schema both require the
``ADMIN_SETUP_KEY`` configured on the server; without it setup is disabled.
"""

import secrets

from fastapi import APIRouter, HTTPException, Request, status

from labsite.api.audit import log_security_event
from labsite.api.dependencies import DatabaseSession
from labsite.core.config import settings
from labsite.core.database import create_tables, list_tables
from labsite.core.logging_config import get_logger
from labsite.core.security import (
    get_password_hash,
    sanitize_input,
    validate_password_strength,
    validate_username,
)
from labsite.models.base import Base
from labsite.repositories.admin import AdminRepository
from labsite.repositories.stats import StatsRepository
from labsite.schemas.auth import (
    AdminUserOut,
    DatabaseSetupRequest,
    DatabaseStatus,
    SetupRequest,
    SetupResult,
    SetupStatus,
)
from labsite.schemas.common import MessageResponse


router = APIRouter()
logger = get_logger(__name__)


def _check_setup_key(provided: str) -> bool:
    expected = settings.admin_setup_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin setup is not configured",
        )
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


@router.get("/admin/setup", response_model=SetupStatus)
async def setup_status(db: DatabaseSession) -> SetupStatus:
    count = await AdminRepository(db).count_users()
    return SetupStatus(has_admin_user=count > 0, admin_count=count)


@router.post(
    "/admin/setup",
    response_model=SetupResult,
    status_code=status.HTTP_201_CREATED,
)
async def create_admin(
    body: SetupRequest,
    request: Request,
    db: DatabaseSession,
) -> SetupResult:
    """
    Create an admin account using the setup key.

    Raises:
        HTTPException 400: Invalid username or weak password
        HTTPException 401: Wrong setup key (logged)
        HTTPException 409: Username already exists
        HTTPException 503: No setup key configured
    """
    username = sanitize_input(body.username)

    if not _check_setup_key(body.setup_key):
        await log_security_event(db, request, "setup_failure", username=username)
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid setup key",
        )

    if not validate_username(username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username must be 3-20 characters (letters, numbers, _ and -)",
        )

    problems = validate_password_strength(body.password)
    if problems:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="; ".join(problems),
        )

    repo = AdminRepository(db)
    try:
        user = await repo.create_user(username, get_password_hash(body.password))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    await log_security_event(db, request, "admin_created", username=username)
    logger.info("Admin user created through setup", extra={"username": username})
    return SetupResult(
        message="Admin user created successfully",
        user=AdminUserOut.model_validate(user),
    )


@router.get("/admin/setup/database", response_model=DatabaseStatus)
async def database_status() -> DatabaseStatus:
    existing = set(await list_tables())
    tables = {name: name in existing for name in Base.metadata.tables}
    return DatabaseStatus(ready=all(tables.values()), tables=tables)


@router.post("/admin/setup/database", response_model=MessageResponse)
async def setup_database(body: DatabaseSetupRequest, db: DatabaseSession) -> MessageResponse:
    """Create any missing tables and seed the default stats rows."""
    if not _check_setup_key(body.setup_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid setup key",
        )

    await create_tables()
    await StatsRepository(db).seed_defaults()
    logger.info("Database schema ensured through setup endpoint")
    return MessageResponse(message="Database initialized successfully")
