"""
Stats repository for the single-row HTB and THM profile statistics.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from labsite.models.base import utc_now_iso
from labsite.models.stats import HTBStats, STATS_ROW_ID, THMStats


# Values written by a reset of the HTB stats
HTB_RESET_VALUES: dict[str, Any] = {
    "machines_pwned": 0,
    "global_ranking": 999999,
    "final_score": 0,
    "htb_rank": "Noob",
}

# Served when no THM row exists yet
THM_DEFAULT_VALUES: dict[str, Any] = {
    "thm_rank": "0x4 [Seeker]",
    "global_ranking": 381945,
    "rooms_completed": 17,
    "streak": 5,
    "badges": 4,
    "total_points": 1200,
}

# Rows inserted by the database setup endpoint
HTB_SEED_VALUES: dict[str, Any] = {
    "machines_pwned": 127,
    "global_ranking": 15420,
    "final_score": 890,
    "htb_rank": "Hacker",
}


class StatsRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_htb(self) -> Optional[HTBStats]:
        return await self.session.get(HTBStats, STATS_ROW_ID)

    async def save_htb(self, **values: Any) -> HTBStats:
        """Insert or overwrite the HTB stats row with the given values."""
        stats = await self.get_htb()
        if stats is None:
            stats = HTBStats(id=STATS_ROW_ID, **values)
            self.session.add(stats)
        else:
            for key, value in values.items():
                setattr(stats, key, value)
            # Saving unchanged values still counts as an update
            stats.last_updated = utc_now_iso()
        await self.session.flush()
        await self.session.refresh(stats)
        return stats

    async def reset_htb(self) -> HTBStats:
        return await self.save_htb(**HTB_RESET_VALUES)

    async def get_thm(self) -> Optional[THMStats]:
        return await self.session.get(THMStats, STATS_ROW_ID)

    async def save_thm(self, **values: Any) -> THMStats:
        """
        Merge values into the THM stats row.

        Fields that are None keep their stored value (or the default when
        the row is created).
        """
        values = {key: value for key, value in values.items() if value is not None}
        stats = await self.get_thm()
        if stats is None:
            stats = THMStats(id=STATS_ROW_ID, **{**THM_DEFAULT_VALUES, **values})
            self.session.add(stats)
        else:
            for key, value in values.items():
                setattr(stats, key, value)
            stats.last_updated = utc_now_iso()
        await self.session.flush()
        await self.session.refresh(stats)
        return stats

    async def seed_defaults(self) -> None:
        """Create both stats rows if they are missing."""
        if await self.get_htb() is None:
            self.session.add(HTBStats(id=STATS_ROW_ID, **HTB_SEED_VALUES))
        if await self.get_thm() is None:
            self.session.add(THMStats(id=STATS_ROW_ID, **THM_DEFAULT_VALUES))
        await self.session.flush()
