"""
TryHackMe profile statistics.

Reads never fail: without a stored row (or without a database) the
profile defaults are served.
"""

from fastapi import APIRouter, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError

from labsite.api.audit import log_admin_action
from labsite.api.dependencies import CurrentAdmin, DatabaseSession
from labsite.core.logging_config import get_logger
from labsite.repositories.stats import THM_DEFAULT_VALUES, StatsRepository
from labsite.schemas.stats import THMStatsOut, THMStatsUpdate


router = APIRouter()
logger = get_logger(__name__)


@router.get("/thm-stats", response_model=THMStatsOut)
async def get_thm_stats(response: Response, db: DatabaseSession) -> THMStatsOut:
    try:
        stats = await StatsRepository(db).get_thm()
    except SQLAlchemyError:
        logger.error("Failed to read THM stats, serving defaults", exc_info=True)
        await db.rollback()
        response.headers["X-Fallback"] = "true"
        return THMStatsOut(**THM_DEFAULT_VALUES)

    if stats is None:
        return THMStatsOut(**THM_DEFAULT_VALUES)
    return THMStatsOut.model_validate(stats)


@router.post("/thm-stats", response_model=THMStatsOut)
async def update_thm_stats(
    body: THMStatsUpdate,
    request: Request,
    admin: CurrentAdmin,
    db: DatabaseSession,
) -> THMStatsOut:
    """Merge the provided fields into the stored row."""
    if body.thm_rank is None and body.rooms_completed is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="thmRank or roomsCompleted is required",
        )

    values = body.model_dump(exclude_none=True)
    stats = await StatsRepository(db).save_thm(**values)
    await log_admin_action(db, request, "UPDATE_THM_STATS", values)
    return THMStatsOut.model_validate(stats)
