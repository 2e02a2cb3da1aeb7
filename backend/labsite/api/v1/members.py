"""
Supporter member management (admin only).
"""

from typing import List

from fastapi import APIRouter, HTTPException, Request, status

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession
from labsite.repositories.members import MemberRepository
from labsite.schemas.members import MemberCreate, MemberOut


router = APIRouter()


@router.get("/admin/members", response_model=List[MemberOut])
async def list_members(admin: CurrentAdmin, db: DatabaseSession) -> List[MemberOut]:
    members = await MemberRepository(db).list_members()
    return [MemberOut.model_validate(m) for m in members]


@router.post("/admin/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED)
async def create_member(
    body: MemberCreate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> MemberOut:
    try:
        member = await MemberRepository(db).create(
            body.email,
            name=body.name,
            status=body.status,
            tier_name=body.tier_name,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    await log_admin_action(
        db, request, "CREATE_MEMBER",
        {"memberId": member.id, "tier": member.tier_name, "by": admin.user.username},
    )
    return MemberOut.model_validate(member)
