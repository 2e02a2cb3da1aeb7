"""
Audit repository: admin action log, unauthorized access reports and
writeup access log.
"""

from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from labsite.models.audit import AdminLog, UnauthorizedAccessLog, WriteupAccessLog
from labsite.models.base import utc_iso_after


class AuditRepository:
    """Append-only writers and paginated readers for the audit tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(
        self,
        action: str,
        data: Any = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AdminLog:
        """
        Append an admin action.

        Args:
            action: Action name, e.g. ``UPDATE_HTB_STATS`` or ``login_failure``
            data: JSON-serialisable payload (strings are stored as-is)
            ip_address: Client IP
            user_agent: Client user agent
        """
        entry = AdminLog(action=action, ip_address=ip_address, user_agent=user_agent)
        entry.set_data(data)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_logs(
        self,
        limit: int = 50,
        offset: int = 0,
        action: Optional[str] = None,
    ) -> tuple[list[AdminLog], int]:
        """
        Page through admin logs, newest first.

        Returns:
            (rows, total matching rows)
        """
        stmt = select(AdminLog)
        count_stmt = select(func.count(AdminLog.id))
        if action:
            stmt = stmt.where(AdminLog.action == action)
            count_stmt = count_stmt.where(AdminLog.action == action)

        stmt = stmt.order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
        stmt = stmt.limit(limit).offset(offset)

        result = await self.session.execute(stmt)
        total = await self.session.scalar(count_stmt)
        return list(result.scalars().all()), int(total or 0)

    async def delete_logs_older_than(self, days: int) -> int:
        cutoff = utc_iso_after(days=-days)
        result = await self.session.execute(
            delete(AdminLog).where(AdminLog.timestamp < cutoff)
        )
        await self.session.flush()
        return result.rowcount or 0

    async def add_unauthorized_access(self, **fields: Any) -> UnauthorizedAccessLog:
        entry = UnauthorizedAccessLog(**fields)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_unauthorized_access(self, limit: int = 100) -> list[UnauthorizedAccessLog]:
        stmt = (
            select(UnauthorizedAccessLog)
            .order_by(UnauthorizedAccessLog.timestamp.desc(), UnauthorizedAccessLog.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_writeup_access(self, **fields: Any) -> WriteupAccessLog:
        entry = WriteupAccessLog(**fields)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_writeup_access(self, limit: int = 100) -> list[WriteupAccessLog]:
        stmt = (
            select(WriteupAccessLog)
            .order_by(WriteupAccessLog.accessed_at.desc(), WriteupAccessLog.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
