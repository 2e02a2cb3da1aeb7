"""
Single-row profile statistics for Hack The Box and TryHackMe.

Both tables hold at most one row with ``id = 1``.
"""

from sqlalchemy import Column, Integer, String

from labsite.models.base import Base, ModelMixin, utc_now_iso


STATS_ROW_ID = 1


class HTBStats(Base, ModelMixin):
    __tablename__ = "htb_stats"

    id = Column(Integer, primary_key=True, default=STATS_ROW_ID)
    machines_pwned = Column(Integer, nullable=False, default=0)
    global_ranking = Column(Integer, nullable=False, default=0)
    final_score = Column(Integer, nullable=False, default=0)
    htb_rank = Column(String, nullable=False, default="Noob")
    last_updated = Column(String, nullable=False, default=utc_now_iso, onupdate=utc_now_iso)
    created_at = Column(String, nullable=False, default=utc_now_iso)


class THMStats(Base, ModelMixin):
    __tablename__ = "thm_stats"

    id = Column(Integer, primary_key=True, default=STATS_ROW_ID)
    thm_rank = Column(String, nullable=False, default="0x1 [Neophyte]")
    global_ranking = Column(Integer, nullable=False, default=0)
    rooms_completed = Column(Integer, nullable=False, default=0)
    streak = Column(Integer, nullable=False, default=0)
    badges = Column(Integer, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)
    last_updated = Column(String, nullable=False, default=utc_now_iso, onupdate=utc_now_iso)
    created_at = Column(String, nullable=False, default=utc_now_iso)
