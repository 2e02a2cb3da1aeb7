"""
Audit log endpoints.

Admin action logs are paginated and can be pruned by age. Unauthorized
access reports are posted by the frontend when a visitor without a
session lands on an admin page, so that endpoint is public.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, Request, status

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession, Geolocation
from labsite.core.logging_config import get_logger
from labsite.core.security import get_client_ip, get_user_agent, sanitize_input
from labsite.repositories.audit import AuditRepository
from labsite.schemas.common import MessageResponse
from labsite.schemas.logs import (
    AdminLogOut,
    AdminLogPage,
    LogCleanupResult,
    Pagination,
    UnauthorizedLogOut,
    UnauthorizedReport,
    WriteupAccessLogOut,
)


router = APIRouter()
logger = get_logger(__name__)


@router.get("/admin/logs", response_model=AdminLogPage)
async def list_admin_logs(
    admin: CurrentAdmin,
    db: DatabaseSession,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    action: Optional[str] = Query(None),
) -> AdminLogPage:
    """
    Page through admin logs, newest first.

    ``data`` is returned decoded from its stored JSON.
    """
    rows, total = await AuditRepository(db).list_logs(limit=limit, offset=offset, action=action)
    logs = [
        AdminLogOut(
            id=row.id,
            action=row.action,
            data=row.get_data(),
            ip_address=row.ip_address,
            user_agent=row.user_agent,
            timestamp=row.timestamp,
        )
        for row in rows
    ]
    return AdminLogPage(
        logs=logs,
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(logs) < total,
        ),
    )


@router.delete("/admin/logs", response_model=LogCleanupResult)
async def delete_old_logs(
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
    days: int = Query(30, ge=1),
) -> LogCleanupResult:
    deleted = await AuditRepository(db).delete_logs_older_than(days)
    await log_admin_action(
        db, request, "CLEANUP_LOGS",
        {"days": days, "deletedCount": deleted, "by": admin.user.username},
    )
    return LogCleanupResult(
        message=f"Deleted {deleted} logs older than {days} days",
        deleted_count=deleted,
    )


@router.post(
    "/admin/unauthorized-logs",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def report_unauthorized_access(
    request: Request,
    db: DatabaseSession,
    geolocation: Geolocation,
    body: Optional[UnauthorizedReport] = None,
) -> MessageResponse:
    report = body or UnauthorizedReport()
    ip = get_client_ip(request)
    location = await geolocation.lookup(ip)

    await AuditRepository(db).add_unauthorized_access(
        ip_address=ip,
        user_agent=get_user_agent(request),
        path=sanitize_input(report.path) or "/admin/unauthorized",
        reason=sanitize_input(report.reason) or "page_view",
        referer=request.headers.get("Referer"),
        **location,
    )
    logger.warning(
        "Unauthorized admin access reported",
        extra={"client_ip": ip, "path": report.path, "country": location.get("country")},
    )
    return MessageResponse(message="Access attempt logged")


@router.get("/admin/unauthorized-logs", response_model=List[UnauthorizedLogOut])
async def list_unauthorized_access(admin: CurrentAdmin, db: DatabaseSession) -> List[UnauthorizedLogOut]:
    rows = await AuditRepository(db).list_unauthorized_access(limit=100)
    return [UnauthorizedLogOut.model_validate(row) for row in rows]


@router.get("/admin/writeup-access-logs", response_model=List[WriteupAccessLogOut])
async def list_writeup_access(admin: CurrentAdmin, db: DatabaseSession) -> List[WriteupAccessLogOut]:
    rows = await AuditRepository(db).list_writeup_access(limit=100)
    return [WriteupAccessLogOut.model_validate(row) for row in rows]
