"""
Pydantic schemas for HTB machines and THM rooms.

Tags may be sent as a list, a JSON array string or a comma-separated
string; they are always returned as a list.
"""

from typing import Any, List, Optional

from pydantic import Field, field_validator

from labsite.models.machine import HTBMachine, THMRoom, parse_tags
from labsite.schemas.common import CamelModel


class _TagsMixin(CamelModel):
    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def normalise_tags(cls, v: Any) -> Optional[List[str]]:
        if v is None:
            return None
        return parse_tags(v)


class MachinePublic(_TagsMixin):
    """Machine as shown to visitors: never includes writeup or password."""
    id: str
    name: str
    os: str
    difficulty: str
    status: str
    is_active: bool
    summary: Optional[str] = None
    date_completed: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MachineAdmin(MachinePublic):
    writeup: Optional[str] = None
    password: Optional[str] = None


class MachineCreate(_TagsMixin):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    os: str = Field(min_length=1)
    difficulty: str = Field(min_length=1)
    status: str = Field(min_length=1)
    is_active: bool = True
    password: Optional[str] = None
    summary: Optional[str] = None
    date_completed: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    writeup: Optional[str] = None


class MachineUpdate(_TagsMixin):
    """Partial update; omitted fields keep their stored values."""
    id: str = Field(min_length=1)
    name: Optional[str] = None
    os: Optional[str] = None
    difficulty: Optional[str] = None
    status: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None
    summary: Optional[str] = None
    date_completed: Optional[str] = None
    tags: Optional[List[str]] = None
    writeup: Optional[str] = None


class MachineBulkRequest(CamelModel):
    operation: str
    machine_ids: List[str] = Field(default_factory=list)
    new_status: Optional[str] = None
    machine_ids_to_delete: List[str] = Field(default_factory=list)


class MachineBulkResult(CamelModel):
    success: bool = True
    message: str
    affected: int


class MachineStats(CamelModel):
    total: int
    completed: int
    in_progress: int
    easy: int
    medium: int
    hard: int


class RoomOut(_TagsMixin):
    id: str
    slug: str
    title: str
    name: str
    difficulty: str
    status: str
    date_completed: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    writeup: Optional[str] = None
    room_code: Optional[str] = None
    url: str
    points: int = 100
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_room(cls, room: THMRoom) -> "RoomOut":
        code = room.room_code or room.id
        return cls(
            id=room.id,
            slug=room.id,
            title=room.name,
            name=room.name,
            difficulty=room.difficulty,
            status=room.status,
            date_completed=room.date_completed,
            tags=room.get_tags(),
            description=room.description,
            writeup=room.writeup,
            room_code=room.room_code,
            url=f"https://tryhackme.com/room/{code}",
            created_at=room.created_at,
            updated_at=room.updated_at,
        )


class RoomCreate(_TagsMixin):
    id: Optional[str] = None
    title: str = Field(min_length=1)
    difficulty: str = Field(min_length=1)
    status: str = "In Progress"
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    writeup: Optional[str] = None
    date_completed: Optional[str] = None
    room_code: Optional[str] = None


class RoomUpdate(_TagsMixin):
    id: str = Field(min_length=1)
    title: Optional[str] = None
    difficulty: Optional[str] = None
    status: Optional[str] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    writeup: Optional[str] = None
    date_completed: Optional[str] = None
    room_code: Optional[str] = None


class RoomStats(CamelModel):
    total: int
    completed: int
    in_progress: int


def machine_payload(machine: HTBMachine, include_private: bool) -> dict:
    """Serialise a machine for the public or the admin view."""
    schema = MachineAdmin if include_private else MachinePublic
    return schema.model_validate(machine).model_dump(by_alias=True)
