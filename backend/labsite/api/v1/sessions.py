"""
Admin session maintenance.

Both endpoints accept an admin session or the ``X-Admin-Key`` header, so a
scheduled job can purge stale sessions without logging in.
"""

from fastapi import APIRouter, Request

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import AdminOrApiKey, DatabaseSession
from labsite.core.logging_config import get_logger
from labsite.repositories.admin import AdminRepository
from labsite.schemas.auth import SessionCleanupResult, SessionStats


router = APIRouter()
logger = get_logger(__name__)


@router.post("/admin/sessions/cleanup", response_model=SessionCleanupResult)
async def cleanup_sessions(
    request: Request,
    caller: AdminOrApiKey,
    db: DatabaseSession,
) -> SessionCleanupResult:
    """Delete expired and deactivated sessions."""
    deleted = await AdminRepository(db).cleanup_sessions()
    await log_admin_action(
        db, request, "session_cleanup",
        {
            "deletedSessions": deleted,
            "triggeredBy": caller.user.username if caller else "api_key",
        },
    )
    logger.info("Admin sessions cleaned up", extra={"deleted_sessions": deleted})
    return SessionCleanupResult(
        message=f"Cleaned up {deleted} expired sessions",
        deleted_sessions=deleted,
    )


@router.get("/admin/sessions/stats", response_model=SessionStats)
async def session_stats(caller: AdminOrApiKey, db: DatabaseSession) -> SessionStats:
    return SessionStats(**await AdminRepository(db).session_stats())
