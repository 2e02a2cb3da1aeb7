"""
Pydantic schemas for audit log endpoints.
"""

from typing import Any, List, Optional

from labsite.schemas.common import CamelModel


class AdminLogOut(CamelModel):
    id: int
    action: str
    data: Any = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: str


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class AdminLogPage(CamelModel):
    logs: List[AdminLogOut]
    pagination: Pagination


class LogCleanupResult(CamelModel):
    success: bool = True
    message: str
    deleted_count: int


class UnauthorizedReport(CamelModel):
    path: Optional[str] = None
    reason: Optional[str] = None


class UnauthorizedLogOut(CamelModel):
    id: int
    ip_address: str
    user_agent: Optional[str] = None
    path: str
    reason: str
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    referer: Optional[str] = None
    timestamp: str


class WriteupAccessLogOut(CamelModel):
    id: int
    machine_id: str
    email: str
    name: Optional[str] = None
    ip_address: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    user_agent: Optional[str] = None
    accessed_at: str
