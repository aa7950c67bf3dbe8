"""
Background Refresh Scheduler
=============================
Keeps priority forecasts warm and the cache tidy on a timer.

Each tick:
1. Sweeps entries older than 2 x max_age_hours
2. Finds stale cached forecasts of priority products
3. Refreshes them in batches of 3, starting each batch 1 second after the
   previous one started. Batches may overlap when a recompute is slow.

Concurrency Model:
- Single asyncio event loop; the scheduler owns its timer task, so several
  schedulers can run side by side (e.g. in tests)
- stop() only prevents future ticks; refreshes already issued run to
  completion and still write their results
- A failing product never blocks the rest of its batch or the scheduler;
  it is simply retried on the next tick
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Set

from flowcast.config import SettingsProvider
from flowcast.models.forecast import CacheKey, ForecastCacheEntry, ForecastMethod, Horizon
from flowcast.services.orchestrator import RefreshOrchestrator, Recomputer
from flowcast.utils.constants import SCHEDULER_CONFIG
from flowcast.utils.logger import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class TickReport:
    """What one scheduler tick did."""
    swept: int = 0
    stale_priority: int = 0
    batches: int = 0
    refreshed: int = 0
    failed: int = 0
    keys: List[CacheKey] = field(default_factory=list)


class BackgroundRefreshScheduler:
    """
    Timer-driven refresh of priority forecasts.

    Parameters
    ----------
    orchestrator : RefreshOrchestrator
        Used for every refresh; its cache is swept each tick
    settings : SettingsProvider, optional
        Defaults to the orchestrator's settings. Read at every tick, so
        priority products and max age changes apply without a restart.
    batch_size, batch_stagger_seconds, prewarm_spacing_seconds
        Load-shaping knobs, defaults from SCHEDULER_CONFIG
    sleep : coroutine function
        Delay used for batch stagger and prewarm spacing (asyncio.sleep);
        injectable for tests. The tick timer always uses asyncio.sleep.

    Usage
    -----
    >>> scheduler = BackgroundRefreshScheduler(orchestrator)
    >>> scheduler.start()
    >>> ...
    >>> scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        settings: Optional[SettingsProvider] = None,
        batch_size: int = SCHEDULER_CONFIG["batch_size"],
        batch_stagger_seconds: float = SCHEDULER_CONFIG["batch_stagger_seconds"],
        prewarm_spacing_seconds: float = SCHEDULER_CONFIG["prewarm_spacing_seconds"],
        sleep: Sleep = asyncio.sleep
    ):
        self.orchestrator = orchestrator
        self.settings = settings or orchestrator.settings
        self.batch_size = batch_size
        self.batch_stagger_seconds = batch_stagger_seconds
        self.prewarm_spacing_seconds = prewarm_spacing_seconds
        self._sleep = sleep
        self._recomputer: Optional[Recomputer] = None
        self._timer: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    @property
    def cache(self):
        return self.orchestrator.cache

    @property
    def is_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def status(self) -> str:
        return "running" if self.is_running else "stopped"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, recomputer: Optional[Recomputer] = None) -> bool:
        """
        Arm the refresh timer. Must be called from a running event loop.

        Re-arms cleanly if already running. Returns False without arming
        when caching is disabled in settings.
        """
        if not self.settings.refresh.enabled:
            logger.info("Forecast cache disabled; background refresh not started")
            return False

        self.stop()
        self._recomputer = recomputer
        interval_seconds = self.settings.refresh.refresh_interval_minutes * 60
        self._timer = asyncio.get_running_loop().create_task(self._run_timer(interval_seconds))
        logger.info(
            f"Background refresh started (every {self.settings.refresh.refresh_interval_minutes} min)"
        )
        return True

    def stop(self) -> None:
        """Cancel future ticks. Idempotent; in-flight refreshes finish on their own."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("Background refresh stopped")

    async def _run_timer(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            # Ticks run as their own tasks so stop() cannot cancel them midway
            tick = asyncio.ensure_future(self._safe_tick())
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    async def _safe_tick(self) -> None:
        try:
            await self.run_tick()
        except Exception as e:
            logger.error(f"Background refresh tick failed: {e}")

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    def stale_priority_entries(self) -> List[ForecastCacheEntry]:
        refresh_settings = self.settings.refresh
        return [
            entry for entry in self.cache.entries()
            if entry.product_id in refresh_settings.priority_product_ids
            and self.cache.is_stale(entry, refresh_settings.max_age_hours)
        ]

    async def run_tick(self) -> TickReport:
        """Run one sweep-and-refresh cycle and wait for its refreshes."""
        refresh_settings = self.settings.refresh
        report = TickReport()

        report.swept = self.cache.sweep_stale(refresh_settings.sweep_age_hours)

        if not refresh_settings.background_refresh_enabled:
            logger.debug("Priority refresh disabled; sweep only")
            return report

        stale = self.stale_priority_entries()
        report.stale_priority = len(stale)
        report.keys = [entry.key for entry in stale]
        if not stale:
            return report

        batches = [
            report.keys[i:i + self.batch_size]
            for i in range(0, len(report.keys), self.batch_size)
        ]
        report.batches = len(batches)
        logger.info(f"Refreshing {len(stale)} stale priority forecast(s) in {len(batches)} batch(es)")

        pending: List[asyncio.Future] = []
        for index, batch in enumerate(batches):
            if index > 0:
                await self._sleep(self.batch_stagger_seconds)
            pending.extend(
                asyncio.ensure_future(self._refresh(key, refresh_settings.max_age_hours))
                for key in batch
            )

        outcomes = await asyncio.gather(*pending, return_exceptions=True)
        for key, outcome in zip(report.keys, outcomes):
            if outcome is True:
                report.refreshed += 1
            else:
                report.failed += 1
                if isinstance(outcome, BaseException):
                    logger.error(f"Refresh of {key} raised: {outcome}")

        logger.info(
            f"Refresh tick done: swept={report.swept}, refreshed={report.refreshed}, "
            f"failed={report.failed}"
        )
        return report

    async def _refresh(self, key: CacheKey, max_age_hours: float) -> bool:
        """Refresh one key; True when a fresh entry came back."""
        entry = await self.orchestrator.get_or_refresh(key, self._recomputer)
        return entry is not None and not self.cache.is_stale(entry, max_age_hours)

    # -------------------------------------------------------------------------
    # Prewarm
    # -------------------------------------------------------------------------

    async def prewarm_cache(
        self,
        product_ids: Iterable[str],
        recomputer: Optional[Recomputer] = None
    ) -> int:
        """
        Populate common forecasts for products, e.g. after a bulk import.

        Issues one refresh per product per (horizon, method) pair in
        SCHEDULER_CONFIG["prewarm_pairs"], spaced apart so the recompute path
        is not flooded. Returns how many requests produced an entry.
        """
        recomputer = recomputer or self._recomputer
        keys = [
            CacheKey.build(product_id, None, Horizon(horizon), ForecastMethod(method))
            for product_id in product_ids
            for horizon, method in SCHEDULER_CONFIG["prewarm_pairs"]
        ]
        if not keys:
            return 0

        logger.info(f"Prewarming {len(keys)} forecast(s)")
        pending: List[asyncio.Future] = []
        for index, key in enumerate(keys):
            if index > 0:
                await self._sleep(self.prewarm_spacing_seconds)
            pending.append(asyncio.ensure_future(self.orchestrator.get_or_refresh(key, recomputer)))

        outcomes = await asyncio.gather(*pending, return_exceptions=True)
        warmed = sum(1 for outcome in outcomes if isinstance(outcome, ForecastCacheEntry))
        logger.info(f"Prewarm complete: {warmed}/{len(keys)} forecasts available")
        return warmed
