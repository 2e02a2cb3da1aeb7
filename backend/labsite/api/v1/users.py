"""
Admin account management (admin only).
"""

from typing import List

from fastapi import APIRouter, HTTPException, Request, status

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession
from labsite.core.security import get_password_hash, sanitize_input, validate_username
from labsite.repositories.admin import AdminRepository
from labsite.schemas.auth import AdminUserCreate, AdminUserOut, AdminUserStatusUpdate


router = APIRouter()


@router.get("/admin/users", response_model=List[AdminUserOut])
async def list_users(admin: CurrentAdmin, db: DatabaseSession) -> List[AdminUserOut]:
    users = await AdminRepository(db).list_users()
    return [AdminUserOut.model_validate(user) for user in users]


@router.post(
    "/admin/users",
    response_model=AdminUserOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    body: AdminUserCreate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> AdminUserOut:
    username = sanitize_input(body.username)
    if not validate_username(username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username must be 3-20 characters (letters, numbers, _ and -)",
        )

    try:
        user = await AdminRepository(db).create_user(username, get_password_hash(body.password))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    await log_admin_action(
        db, request, "CREATE_ADMIN_USER",
        {"username": username, "by": admin.user.username},
    )
    return AdminUserOut.model_validate(user)


@router.patch("/admin/users", response_model=AdminUserOut)
async def update_user_status(
    body: AdminUserStatusUpdate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> AdminUserOut:
    """Enable or disable an admin; disabling ends the account's sessions."""
    user = await AdminRepository(db).set_active(body.user_id, body.is_active)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Admin user not found")

    await log_admin_action(
        db, request, "UPDATE_ADMIN_USER_STATUS",
        {"userId": body.user_id, "isActive": body.is_active, "by": admin.user.username},
    )
    return AdminUserOut.model_validate(user)
