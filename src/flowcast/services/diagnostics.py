"""
Cache Diagnostics
==================
Read-only views of the forecast cache for the operations/settings surface.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from flowcast.config import SettingsProvider
from flowcast.services.forecast_cache import ForecastCache
from flowcast.services.orchestrator import RefreshOrchestrator


@dataclass
class CacheDiagnostics:
    """Snapshot of cache health and refresh activity."""
    cache_size: int
    fresh_count: int
    stale_count: int
    hit_rate: float
    hit_count: int
    miss_count: int
    refresh_count: int
    last_refresh_at: Optional[datetime]
    scheduler_running: bool
    cache_keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_size": self.cache_size,
            "fresh_count": self.fresh_count,
            "stale_count": self.stale_count,
            "hit_rate": round(self.hit_rate, 4),
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "refresh_count": self.refresh_count,
            "last_refresh_at": self.last_refresh_at.isoformat() if self.last_refresh_at else None,
            "scheduler_status": "running" if self.scheduler_running else "stopped",
            "cache_keys": self.cache_keys,
        }


def collect_diagnostics(
    cache: ForecastCache,
    orchestrator: RefreshOrchestrator,
    settings: Optional[SettingsProvider] = None,
    scheduler=None
) -> CacheDiagnostics:
    """
    Summarise cache size, freshness, hit rate and scheduler status.

    Freshness uses the same max age as serving decisions.
    """
    settings = settings or orchestrator.settings
    max_age = settings.refresh.max_age_hours
    entries = cache.entries()
    stale = sum(1 for entry in entries if cache.is_stale(entry, max_age))
    stats = orchestrator.stats

    return CacheDiagnostics(
        cache_size=len(entries),
        fresh_count=len(entries) - stale,
        stale_count=stale,
        hit_rate=stats.hit_rate,
        hit_count=stats.hit_count,
        miss_count=stats.miss_count,
        refresh_count=stats.refresh_count,
        last_refresh_at=stats.last_refresh_at,
        scheduler_running=bool(scheduler is not None and scheduler.is_running),
        cache_keys=[str(entry.key) for entry in entries],
    )


def entries_frame(cache: ForecastCache) -> pd.DataFrame:
    """
    One row per cached forecast, oldest-inserted first.

    Columns: product_id, location_id, horizon, method, average_daily,
    peak_daily, result_method, computed_at, age_hours
    """
    now = cache.clock()
    rows = [
        {
            "product_id": entry.product_id,
            "location_id": entry.location_id,
            "horizon": int(entry.horizon),
            "method": entry.method.value,
            "average_daily": entry.result.average_daily,
            "peak_daily": entry.result.peak_daily,
            "result_method": entry.result.method,
            "computed_at": entry.computed_at,
            "age_hours": round(entry.age_hours(now), 2),
        }
        for entry in cache.entries()
    ]

    cols = [
        'product_id', 'location_id', 'horizon', 'method', 'average_daily',
        'peak_daily', 'result_method', 'computed_at', 'age_hours'
    ]
    return pd.DataFrame(rows, columns=cols)
