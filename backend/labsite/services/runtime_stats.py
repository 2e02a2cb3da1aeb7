"""
In-memory HTB stats used when no database row is needed.

Values start from settings and live only as long as the process.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict

from labsite.core.config import settings
from labsite.models.base import utc_now_iso


@dataclass
class RuntimeHTBStatsStore:
    machines_pwned: int = field(default_factory=lambda: settings.htb_machines_pwned)
    global_ranking: int = field(default_factory=lambda: settings.htb_global_ranking)
    final_score: int = field(default_factory=lambda: settings.htb_final_score)
    htb_rank: str = field(default_factory=lambda: settings.htb_rank)
    last_updated: str = field(default_factory=utc_now_iso)

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)

    def update(self, **values: Any) -> Dict[str, Any]:
        """Overwrite the provided fields (None leaves a field unchanged)."""
        for key, value in values.items():
            if value is not None and key in {"machines_pwned", "global_ranking", "final_score", "htb_rank"}:
                setattr(self, key, value)
        self.last_updated = utc_now_iso()
        return self.snapshot()


runtime_htb_stats = RuntimeHTBStatsStore()
