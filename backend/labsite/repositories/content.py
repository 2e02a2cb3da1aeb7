"""
Content repositories for HTB machines and THM rooms.
"""

from typing import Any, Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from labsite.models.machine import HTBMachine, THMRoom


class MachineRepository:
    """
    Repository for HTB machine data access.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_machines(self) -> list[HTBMachine]:
        """
        All machines, most recently completed first.

        Machines without a completion date sort after dated ones; ties are
        broken by creation time, newest first.
        """
        stmt = select(HTBMachine).order_by(
            HTBMachine.date_completed.is_(None),
            HTBMachine.date_completed.desc(),
            HTBMachine.created_at.desc(),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, machine_id: str) -> Optional[HTBMachine]:
        return await self.session.get(HTBMachine, machine_id)

    async def create(self, **fields: Any) -> HTBMachine:
        """
        Create a machine.

        Raises:
            ValueError: If a machine with the same id exists
        """
        duplicate = f"Machine with ID '{fields['id']}' already exists"
        if await self.get(fields["id"]) is not None:
            raise ValueError(duplicate)

        tags = fields.pop("tags", None)
        machine = HTBMachine(**fields)
        machine.set_tags(tags or [])
        try:
            async with self.session.begin_nested():
                self.session.add(machine)
        except IntegrityError as exc:
            raise ValueError(duplicate) from exc
        await self.session.refresh(machine)
        return machine

    async def update(self, machine: HTBMachine, **fields: Any) -> HTBMachine:
        """Apply the given fields; ``tags`` accepts any tag representation."""
        if "tags" in fields:
            machine.set_tags(fields.pop("tags"))
        for key, value in fields.items():
            setattr(machine, key, value)
        await self.session.flush()
        await self.session.refresh(machine)
        return machine

    async def delete(self, machine: HTBMachine) -> None:
        await self.session.delete(machine)
        await self.session.flush()

    async def bulk_update_status(self, machine_ids: list[str], status: str) -> int:
        if not machine_ids:
            return 0
        result = await self.session.execute(
            update(HTBMachine)
            .where(HTBMachine.id.in_(machine_ids))
            .values(status=status)
        )
        await self.session.flush()
        return result.rowcount or 0

    async def bulk_delete(self, machine_ids: list[str]) -> int:
        if not machine_ids:
            return 0
        result = await self.session.execute(
            delete(HTBMachine).where(HTBMachine.id.in_(machine_ids))
        )
        await self.session.flush()
        return result.rowcount or 0

    async def stats(self) -> dict[str, int]:
        """Counts by status and difficulty (case-insensitive)."""
        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        status = func.lower(HTBMachine.status)
        difficulty = func.lower(HTBMachine.difficulty)
        stmt = select(
            func.count(HTBMachine.id),
            count_where(status == "completed"),
            count_where(status == "in progress"),
            count_where(difficulty == "easy"),
            count_where(difficulty == "medium"),
            count_where(difficulty == "hard"),
        )
        row = (await self.session.execute(stmt)).one()
        total, completed, in_progress, easy, medium, hard = (int(v or 0) for v in row)
        return {
            "total": total,
            "completed": completed,
            "in_progress": in_progress,
            "easy": easy,
            "medium": medium,
            "hard": hard,
        }


class RoomRepository:
    """Repository for THM room data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_rooms(self) -> list[THMRoom]:
        stmt = select(THMRoom).order_by(
            THMRoom.date_completed.is_(None),
            THMRoom.date_completed.desc(),
            THMRoom.created_at.desc(),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get(self, room_id: str) -> Optional[THMRoom]:
        return await self.session.get(THMRoom, room_id)

    async def create(self, **fields: Any) -> THMRoom:
        """
        Create a room.

        Raises:
            ValueError: If a room with the same id exists
        """
        duplicate = f"Room with ID '{fields['id']}' already exists"
        if await self.get(fields["id"]) is not None:
            raise ValueError(duplicate)

        tags = fields.pop("tags", None)
        room = THMRoom(**fields)
        room.set_tags(tags or [])
        try:
            async with self.session.begin_nested():
                self.session.add(room)
        except IntegrityError as exc:
            raise ValueError(duplicate) from exc
        await self.session.refresh(room)
        return room

    async def update(self, room: THMRoom, **fields: Any) -> THMRoom:
        if "tags" in fields:
            room.set_tags(fields.pop("tags"))
        for key, value in fields.items():
            setattr(room, key, value)
        await self.session.flush()
        await self.session.refresh(room)
        return room

    async def delete(self, room: THMRoom) -> None:
        await self.session.delete(room)
        await self.session.flush()

    async def stats(self) -> dict[str, int]:
        status = func.lower(THMRoom.status)
        stmt = select(
            func.count(THMRoom.id),
            func.coalesce(func.sum(case((status == "completed", 1), else_=0)), 0),
            func.coalesce(func.sum(case((status == "in progress", 1), else_=0)), 0),
        )
        total, completed, in_progress = (int(v or 0) for v in (await self.session.execute(stmt)).one())
        return {"total": total, "completed": completed, "in_progress": in_progress}
