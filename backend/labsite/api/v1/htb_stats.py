"""
Hack The Box profile statistics.

The stored row backs the public profile card. ``/htb-stats/runtime`` serves
the in-memory copy that starts from settings and is updated by a cron job.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession, require_api_key
from labsite.core.logging_config import get_logger
from labsite.repositories.stats import StatsRepository
from labsite.schemas.stats import (
    HTBStatsOut,
    HTBStatsReplace,
    HTBStatsResetResponse,
    HTBStatsUpdate,
    RuntimeHTBStats,
    RuntimeHTBStatsUpdate,
)
from labsite.services.runtime_stats import runtime_htb_stats


router = APIRouter()
logger = get_logger(__name__)


@router.get("/htb-stats", response_model=HTBStatsOut)
async def get_htb_stats(db: DatabaseSession) -> HTBStatsOut:
    stats = await StatsRepository(db).get_htb()
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No stats found")
    return HTBStatsOut.model_validate(stats)


@router.post("/htb-stats", response_model=HTBStatsOut)
async def update_htb_stats(
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
    body: Optional[HTBStatsUpdate] = None,
) -> HTBStatsOut:
    """
    Lenient update: missing fields (or a missing body) fall back to
    ``0 / 0 / 0 / "Noob"``.
    """
    values = (body or HTBStatsUpdate()).model_dump()
    stats = await StatsRepository(db).save_htb(**values)
    await log_admin_action(db, request, "UPDATE_HTB_STATS", values)
    return HTBStatsOut.model_validate(stats)


@router.put("/htb-stats", response_model=HTBStatsOut)
async def replace_htb_stats(
    body: HTBStatsReplace,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> HTBStatsOut:
    values = body.model_dump()
    stats = await StatsRepository(db).save_htb(**values)
    await log_admin_action(db, request, "UPDATE_HTB_STATS_PUT", values)
    return HTBStatsOut.model_validate(stats)


@router.delete("/htb-stats", response_model=HTBStatsResetResponse)
async def reset_htb_stats(
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> HTBStatsResetResponse:
    stats = await StatsRepository(db).reset_htb()
    await log_admin_action(db, request, "RESET_HTB_STATS", {"by": admin.user.username})
    logger.info("HTB stats reset", extra={"username": admin.user.username})
    return HTBStatsResetResponse(
        message="HTB stats reset to defaults",
        stats=HTBStatsOut.model_validate(stats),
    )


@router.get("/htb-stats/runtime", response_model=RuntimeHTBStats)
async def get_runtime_htb_stats() -> RuntimeHTBStats:
    return RuntimeHTBStats(**runtime_htb_stats.snapshot())


@router.post(
    "/htb-stats/runtime",
    response_model=RuntimeHTBStats,
    dependencies=[Depends(require_api_key)],
)
async def update_runtime_htb_stats(body: RuntimeHTBStatsUpdate) -> RuntimeHTBStats:
    snapshot = runtime_htb_stats.update(**body.model_dump())
    logger.info("Runtime HTB stats updated", extra={"stats": snapshot})
    return RuntimeHTBStats(**snapshot)
