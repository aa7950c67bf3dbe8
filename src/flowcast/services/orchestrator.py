"""
Refresh Orchestrator
=====================
Serves forecasts from the cache when fresh and recomputes them otherwise.

Guarantees:
- get_or_refresh never raises because a recompute failed; the caller gets
  the best data available (fresh, stale, or None)
- Writes are sequenced per key: a recompute only writes if it was started
  after the one whose result is currently stored, so a slow older recompute
  can never overwrite a newer result
- No timeout is applied to a recompute; a hung recompute holds only its own
  caller
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from flowcast.config import SettingsProvider
from flowcast.errors import RefreshFailure
from flowcast.models.forecast import CacheKey, CacheStats, ForecastCacheEntry, ForecastResult
from flowcast.services.forecast_cache import ForecastCache
from flowcast.services.forecaster import get_forecast_for_horizon
from flowcast.services.providers import SalesHistoryProvider
from flowcast.utils.constants import FORECAST_CONFIG
from flowcast.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# RECOMPUTERS
# =============================================================================

class Recomputer(ABC):
    """Produces a fresh ForecastResult for a cache key, or raises."""

    @abstractmethod
    async def recompute(self, key: CacheKey) -> ForecastResult:
        ...


class CallableRecomputer(Recomputer):
    """
    Adapts a plain function to the Recomputer interface.

    The function receives (product_id, location_id, horizon, method) and may
    be sync or async.
    """

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    async def recompute(self, key: CacheKey) -> ForecastResult:
        outcome = self.func(key.product_id, key.location, key.horizon, key.method)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome


class EngineRecomputer(Recomputer):
    """
    Recomputes with the forecast engine from a sales history provider.

    The sales window covers the longest lookback the engine can use for the
    key's horizon, so the provider is not asked for more than needed.
    """

    def __init__(self, sales: SalesHistoryProvider, settings: Optional[SettingsProvider] = None):
        self.sales = sales
        self.settings = settings or SettingsProvider()

    async def recompute(self, key: CacheKey) -> ForecastResult:
        forecast_settings = self.settings.forecast
        history_days = max(
            forecast_settings.min_history_days,
            int(key.horizon) + FORECAST_CONFIG["history_padding_days"],
        )
        records = self.sales.get_product_sales_history(
            key.product_id, key.location, days_back=history_days + 1
        )
        return get_forecast_for_horizon(
            records,
            key.product_id,
            key.location,
            key.horizon,
            key.method,
            min_history_days=forecast_settings.min_history_days,
            alpha=forecast_settings.ewma_alpha,
        )


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class RefreshOrchestrator:
    """
    Cache-first forecast access with graceful degradation.

    Parameters
    ----------
    cache : ForecastCache
        Cache to read and write
    settings : SettingsProvider
        Source of the staleness threshold and the cache on/off switch
    recomputer : Recomputer, optional
        Default recompute capability; a per-call recomputer takes precedence

    Usage
    -----
    >>> orchestrator = RefreshOrchestrator(cache, settings, EngineRecomputer(sales))
    >>> entry = await orchestrator.get_or_refresh(CacheKey.build("SKU-1", None, 30, "ewma"))
    """

    def __init__(
        self,
        cache: ForecastCache,
        settings: Optional[SettingsProvider] = None,
        recomputer: Optional[Recomputer] = None
    ):
        self.cache = cache
        self.settings = settings or SettingsProvider()
        self.recomputer = recomputer
        self.stats = CacheStats()
        self._issued: Dict[CacheKey, int] = {}
        self._written: Dict[CacheKey, int] = {}
        self._in_flight: Dict[CacheKey, int] = {}

    @property
    def clock(self) -> Callable[[], datetime]:
        return self.cache.clock

    async def get_or_refresh(
        self,
        key: CacheKey,
        recomputer: Optional[Recomputer] = None
    ) -> Optional[ForecastCacheEntry]:
        """
        Return a fresh forecast for key, recomputing if needed.

        Returns the cached entry on a fresh hit. Otherwise recomputes; on
        failure (or with no recomputer available) returns whatever was
        cached, stale or not, or None.
        """
        refresh_settings = self.settings.refresh
        use_cache = refresh_settings.enabled

        cached = self.cache.get(key) if use_cache else None
        if cached is not None and not self.cache.is_stale(cached, refresh_settings.max_age_hours):
            self.stats.hit_count += 1
            return cached

        self.stats.miss_count += 1

        recomputer = recomputer or self.recomputer
        if recomputer is None:
            return cached

        ticket = self._issue_ticket(key)
        try:
            try:
                result = await recomputer.recompute(key)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failure = RefreshFailure(key, e)
                logger.error(f"{failure}; serving {'stale' if cached else 'no'} cached forecast")
                return cached

            entry = ForecastCacheEntry.from_key(key, result, self.clock())
            self.stats.refresh_count += 1
            self.stats.last_refresh_at = entry.computed_at

            if use_cache:
                self._write(key, ticket, entry)
            return entry
        finally:
            self._release_ticket(key)

    def _issue_ticket(self, key: CacheKey) -> int:
        ticket = self._issued.get(key, 0) + 1
        self._issued[key] = ticket
        self._in_flight[key] = self._in_flight.get(key, 0) + 1
        return ticket

    def _release_ticket(self, key: CacheKey) -> None:
        # Once nothing is in flight for a key its tickets can restart at 1
        remaining = self._in_flight[key] - 1
        if remaining:
            self._in_flight[key] = remaining
            return
        del self._in_flight[key]
        self._issued.pop(key, None)
        self._written.pop(key, None)

    def _write(self, key: CacheKey, ticket: int, entry: ForecastCacheEntry) -> None:
        if ticket <= self._written.get(key, 0):
            logger.debug(f"Discarding out-of-order result for {key} (ticket {ticket})")
            return
        self._written[key] = ticket

        stored = self.cache.put(entry)
        if not stored.ok:
            logger.warning(f"Forecast for {key} served but not persisted: {stored.error}")
