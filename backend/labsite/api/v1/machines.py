"""
Hack The Box machine endpoints.

Visitors see the public view of each machine; the writeup and the unlock
password are only ever returned to an authenticated admin. Writeups reach
visitors through the OTP flow in ``writeups.py``.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession, EmailService, OptionalAdmin
from labsite.core.logging_config import get_logger
from labsite.core.security import slugify
from labsite.repositories.content import MachineRepository
from labsite.repositories.members import MemberRepository, NewsletterRepository
from labsite.schemas.common import MessageResponse
from labsite.schemas.machine import (
    MachineBulkRequest,
    MachineBulkResult,
    MachineCreate,
    MachineStats,
    MachineUpdate,
    machine_payload,
)


router = APIRouter()
logger = get_logger(__name__)

# Columns that cannot be cleared through an update
_REQUIRED_FIELDS = {"name", "os", "difficulty", "status", "is_active"}


@router.get("/machines")
async def list_machines(db: DatabaseSession, admin: OptionalAdmin) -> List[Dict[str, Any]]:
    """
    All machines, most recently completed first.

    ``writeup`` and ``password`` are included only for admins.
    """
    machines = await MachineRepository(db).list_machines()
    return [machine_payload(m, include_private=admin is not None) for m in machines]


@router.get("/machines/stats", response_model=MachineStats)
async def machine_stats(db: DatabaseSession) -> MachineStats:
    return MachineStats(**await MachineRepository(db).stats())


@router.get("/machines/{machine_id}")
async def get_machine(machine_id: str, db: DatabaseSession) -> Dict[str, Any]:
    machine = await MachineRepository(db).get(machine_id)
    if machine is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Machine not found")
    return machine_payload(machine, include_private=False)


@router.post("/machines", status_code=status.HTTP_201_CREATED)
async def create_machine(
    body: MachineCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: CurrentAdmin,
    db: DatabaseSession,
    email_service: EmailService,
) -> Dict[str, Any]:
    """
    Create a machine and announce it to subscribers and members.

    The id defaults to the slugified name. The announcement is sent after
    the response, and its failures never affect the request.

    Raises:
        HTTPException 409: If a machine with the same id exists
    """
    fields = body.model_dump()
    fields["id"] = (body.id or "").strip() or slugify(body.name)

    try:
        machine = await MachineRepository(db).create(**fields)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    await log_admin_action(
        db, request, "CREATE_MACHINE",
        {"id": machine.id, "name": machine.name, "by": admin.user.username},
    )

    recipients = await NewsletterRepository(db).all_emails()
    recipients += await MemberRepository(db).all_emails()
    background_tasks.add_task(
        email_service.send_new_machine_notification,
        recipients,
        machine.name,
        machine.os,
        machine.difficulty,
    )

    logger.info("Machine created", extra={"machine_id": machine.id})
    return machine_payload(machine, include_private=True)


@router.put("/machines")
async def update_machine(
    body: MachineUpdate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> Dict[str, Any]:
    """Update the fields present in the body; omitted fields keep their values."""
    repo = MachineRepository(db)
    machine = await repo.get(body.id)
    if machine is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Machine not found")

    fields = body.model_dump(exclude_unset=True, exclude={"id"})
    fields = {
        key: value for key, value in fields.items()
        if value is not None or key not in _REQUIRED_FIELDS
    }
    machine = await repo.update(machine, **fields)

    await log_admin_action(
        db, request, "UPDATE_MACHINE",
        {"id": machine.id, "fields": sorted(fields), "by": admin.user.username},
    )
    return machine_payload(machine, include_private=True)


@router.delete("/machines", response_model=MessageResponse)
async def delete_machine(
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
    machine_id: str = Query(..., alias="id", min_length=1),
) -> MessageResponse:
    repo = MachineRepository(db)
    machine = await repo.get(machine_id)
    if machine is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Machine not found")

    await repo.delete(machine)
    await log_admin_action(
        db, request, "DELETE_MACHINE",
        {"id": machine_id, "by": admin.user.username},
    )
    return MessageResponse(message=f"Machine '{machine_id}' deleted")


@router.patch("/machines", response_model=MachineBulkResult)
async def bulk_machines(
    body: MachineBulkRequest,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> MachineBulkResult:
    """
    Bulk operations on machines.

    Operations:
        bulk_update_status: set ``newStatus`` on every id in ``machineIds``
        bulk_delete: delete every id in ``machineIdsToDelete``
    """
    repo = MachineRepository(db)

    if body.operation == "bulk_update_status":
        if not body.machine_ids or not body.new_status:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="machineIds and newStatus are required",
            )
        affected = await repo.bulk_update_status(body.machine_ids, body.new_status)
        message = f"Updated status of {affected} machines to '{body.new_status}'"
        audit = {"ids": body.machine_ids, "newStatus": body.new_status}

    elif body.operation == "bulk_delete":
        if not body.machine_ids_to_delete:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="machineIdsToDelete is required",
            )
        affected = await repo.bulk_delete(body.machine_ids_to_delete)
        message = f"Deleted {affected} machines"
        audit = {"ids": body.machine_ids_to_delete}

    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown operation: {body.operation}",
        )

    await log_admin_action(db, request, body.operation.upper(), {**audit, "affected": affected})
    return MachineBulkResult(message=message, affected=affected)
