"""
Pydantic schemas for HTB and THM profile statistics.
"""

from typing import Optional

from pydantic import Field

from labsite.schemas.common import CamelModel


class HTBStatsOut(CamelModel):
    machines_pwned: int
    global_ranking: int
    final_score: int
    htb_rank: str
    last_updated: Optional[str] = None


class HTBStatsUpdate(CamelModel):
    """Lenient update: every field is optional and defaults to the reset value."""
    machines_pwned: int = Field(default=0, ge=0)
    global_ranking: int = Field(default=0, ge=0)
    final_score: int = Field(default=0, ge=0)
    htb_rank: str = "Noob"


class HTBStatsReplace(CamelModel):
    """Strict replacement: all four fields are required."""
    machines_pwned: int = Field(ge=0)
    global_ranking: int = Field(ge=0)
    final_score: int = Field(ge=0)
    htb_rank: str = Field(min_length=1)


class HTBStatsResetResponse(CamelModel):
    success: bool = True
    message: str
    stats: HTBStatsOut


class THMStatsOut(CamelModel):
    thm_rank: str
    global_ranking: int
    rooms_completed: int
    streak: int
    badges: int
    total_points: int
    last_updated: Optional[str] = None


class THMStatsUpdate(CamelModel):
    thm_rank: Optional[str] = None
    global_ranking: Optional[int] = Field(default=None, ge=0)
    rooms_completed: Optional[int] = Field(default=None, ge=0)
    streak: Optional[int] = Field(default=None, ge=0)
    badges: Optional[int] = Field(default=None, ge=0)
    total_points: Optional[int] = Field(default=None, ge=0)


class RuntimeHTBStats(CamelModel):
    machines_pwned: int
    global_ranking: int
    final_score: int
    htb_rank: str
    last_updated: str


class RuntimeHTBStatsUpdate(CamelModel):
    machines_pwned: Optional[int] = Field(default=None, ge=0)
    global_ranking: Optional[int] = Field(default=None, ge=0)
    final_score: Optional[int] = Field(default=None, ge=0)
    htb_rank: Optional[str] = None
