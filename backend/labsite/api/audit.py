"""
Helpers that write audit rows from route handlers.

Security events (login, logout, setup) are part of the request's own
transaction. Admin action logs for content changes are written inside a
SAVEPOINT so a failing audit insert is logged and dropped without
failing the change itself.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from labsite.core.security import create_security_event, get_client_ip, get_user_agent
from labsite.repositories.audit import AuditRepository

logger = logging.getLogger(__name__)


async def log_security_event(
    db: AsyncSession,
    request: Request,
    event_type: str,
    username: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> None:
    ip = get_client_ip(request)
    user_agent = get_user_agent(request)
    event = create_security_event(event_type, ip, user_agent, username=username, details=details)
    await AuditRepository(db).log_action(event_type, event, ip_address=ip, user_agent=user_agent)

    log = logger.warning if event["severity"] == "high" else logger.info
    log(
        "Security event",
        extra={"event_type": event_type, "client_ip": ip, "username": username},
    )


async def log_admin_action(
    db: AsyncSession,
    request: Request,
    action: str,
    data: Any = None,
) -> None:
    """Append an AdminLog row; failures are logged, never raised."""
    try:
        async with db.begin_nested():
            await AuditRepository(db).log_action(
                action,
                data,
                ip_address=get_client_ip(request),
                user_agent=get_user_agent(request),
            )
    except SQLAlchemyError:
        logger.error("Failed to write admin log", extra={"action": action}, exc_info=True)
