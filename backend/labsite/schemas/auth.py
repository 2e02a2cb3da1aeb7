"""
Pydantic schemas for admin authentication, setup and user management.
"""

from typing import Optional

from pydantic import Field

from labsite.schemas.common import CamelModel


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AdminUserOut(CamelModel):
    """Admin account as exposed by the API (no password data)."""
    id: int
    username: str
    is_active: bool = True
    last_login: Optional[str] = None
    created_at: Optional[str] = None


class LoginResponse(CamelModel):
    success: bool = True
    redirect: str = "/admin"
    user: AdminUserOut


class SessionStatus(CamelModel):
    authenticated: bool
    user: Optional[AdminUserOut] = None


class SetupRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    setup_key: str = Field(min_length=1)


class SetupStatus(CamelModel):
    has_admin_user: bool
    admin_count: int


class AdminUserCreate(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=8, description="At least 8 characters")


class AdminUserStatusUpdate(CamelModel):
    user_id: int
    is_active: bool


class SessionCleanupResult(CamelModel):
    success: bool = True
    message: str
    deleted_sessions: int


class SessionStats(CamelModel):
    total: int
    active: int
    expired: int


class SetupResult(CamelModel):
    success: bool = True
    message: str
    user: AdminUserOut


class DatabaseSetupRequest(CamelModel):
    setup_key: str = Field(min_length=1)


class DatabaseStatus(CamelModel):
    ready: bool
    tables: dict[str, bool]
