"""
TryHackMe room endpoints.

The public list never comes back empty: with no stored rooms (or no
database) the rooms bundled with the package are served instead.
"""

from typing import List

from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession
from labsite.core.logging_config import get_logger
from labsite.core.security import slugify_title
from labsite.data import load_json
from labsite.repositories.content import RoomRepository
from labsite.schemas.common import MessageResponse
from labsite.schemas.machine import RoomCreate, RoomOut, RoomStats, RoomUpdate


router = APIRouter()
logger = get_logger(__name__)

_REQUIRED_FIELDS = {"name", "difficulty", "status"}


def fallback_rooms() -> List[RoomOut]:
    return [RoomOut.model_validate(item) for item in load_json("thm_rooms.json")]


def _room_fields(data: dict) -> dict:
    """Map API field names onto THMRoom columns."""
    if "title" in data:
        data["name"] = data.pop("title")
    return data


@router.get("/rooms", response_model=List[RoomOut])
async def list_rooms(response: Response, db: DatabaseSession) -> List[RoomOut]:
    try:
        rooms = await RoomRepository(db).list_rooms()
    except SQLAlchemyError:
        logger.error("Failed to read rooms, serving bundled rooms", exc_info=True)
        await db.rollback()
        response.headers["X-Fallback"] = "true"
        return fallback_rooms()

    if not rooms:
        return fallback_rooms()
    return [RoomOut.from_room(room) for room in rooms]


@router.get("/rooms/stats", response_model=RoomStats)
async def room_stats(db: DatabaseSession) -> RoomStats:
    return RoomStats(**await RoomRepository(db).stats())


@router.post("/rooms", response_model=RoomOut, status_code=status.HTTP_201_CREATED)
async def create_room(
    body: RoomCreate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> RoomOut:
    fields = _room_fields(body.model_dump())
    fields["id"] = (body.id or "").strip() or slugify_title(body.title)
    if not fields["id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title must contain letters or digits",
        )

    try:
        room = await RoomRepository(db).create(**fields)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    await log_admin_action(
        db, request, "CREATE_ROOM",
        {"id": room.id, "title": room.name, "by": admin.user.username},
    )
    return RoomOut.from_room(room)


@router.put("/rooms", response_model=RoomOut)
async def update_room(
    body: RoomUpdate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> RoomOut:
    """Merge the provided fields with the stored room."""
    repo = RoomRepository(db)
    room = await repo.get(body.id)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    fields = _room_fields(body.model_dump(exclude_unset=True, exclude={"id"}))
    fields = {
        key: value for key, value in fields.items()
        if value is not None or key not in _REQUIRED_FIELDS
    }
    room = await repo.update(room, **fields)

    await log_admin_action(
        db, request, "UPDATE_ROOM",
        {"id": room.id, "fields": sorted(fields), "by": admin.user.username},
    )
    return RoomOut.from_room(room)


@router.delete("/rooms", response_model=MessageResponse)
async def delete_room(
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
    room_id: str = Query(..., alias="id", min_length=1),
) -> MessageResponse:
    repo = RoomRepository(db)
    room = await repo.get(room_id)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    await repo.delete(room)
    await log_admin_action(db, request, "DELETE_ROOM", {"id": room_id, "by": admin.user.username})
    return MessageResponse(message=f"Room '{room_id}' deleted")
