"""Tests for cache-first forecast access and graceful degradation."""

import asyncio
from datetime import datetime, timedelta

from flowcast.config import CacheRefreshSettings, SettingsProvider
from flowcast.models.forecast import CacheKey, ForecastResult
from flowcast.services.forecaster import get_forecast_for_horizon
from flowcast.services.orchestrator import (
    CallableRecomputer,
    EngineRecomputer,
    Recomputer,
    RefreshOrchestrator,
)
from flowcast.services.providers import InMemorySalesHistory
from tests.conftest import CountingRecomputer, make_entry, sales_events

KEY = CacheKey.build("P1", None, 30, "moving_avg")


def test_miss_then_hit(orchestrator, recomputer, cache):
    first = asyncio.run(orchestrator.get_or_refresh(KEY))
    second = asyncio.run(orchestrator.get_or_refresh(KEY))

    assert first is second
    assert cache.get(KEY) is first
    assert len(recomputer.calls) == 1
    stats = orchestrator.stats
    assert (stats.hit_count, stats.miss_count, stats.refresh_count) == (1, 1, 1)
    assert stats.hit_rate == 0.5
    assert stats.last_refresh_at == first.computed_at


def test_stale_entry_is_recomputed(orchestrator, recomputer, cache, clock):
    cache.put(make_entry("P1", computed_at=clock() - timedelta(hours=30), average_daily=99.0))

    entry = asyncio.run(orchestrator.get_or_refresh(KEY))

    assert entry.result.average_daily == 1.0
    assert entry.computed_at == clock()
    assert cache.get(KEY) is entry


def test_without_recomputer_serves_whatever_is_cached(cache, settings, clock):
    orchestrator = RefreshOrchestrator(cache, settings)
    assert asyncio.run(orchestrator.get_or_refresh(KEY)) is None

    stale = make_entry("P1", computed_at=clock() - timedelta(hours=30))
    cache.put(stale)

    assert asyncio.run(orchestrator.get_or_refresh(KEY)) is stale
    assert orchestrator.stats.miss_count == 2


def test_failing_recompute_serves_stale_value(cache, settings, clock):
    stale = make_entry("X", computed_at=clock() - timedelta(hours=30))
    cache.put(stale)
    orchestrator = RefreshOrchestrator(cache, settings, CountingRecomputer(failing={"X"}))

    served = asyncio.run(orchestrator.get_or_refresh(stale.key))

    assert served is stale
    assert cache.get(stale.key) is stale
    assert orchestrator.stats.refresh_count == 0
    assert orchestrator.stats.miss_count == 1


def test_failing_recompute_without_cache_returns_none(cache, settings):
    orchestrator = RefreshOrchestrator(cache, settings, CountingRecomputer(failing={"P1"}))

    assert asyncio.run(orchestrator.get_or_refresh(KEY)) is None


def test_per_call_recomputer_takes_precedence(orchestrator, recomputer):
    override = CountingRecomputer()

    asyncio.run(orchestrator.get_or_refresh(KEY, override))

    assert len(override.calls) == 1
    assert recomputer.calls == []


def test_callable_recomputer_accepts_sync_and_async_functions(cache, settings):
    seen = []

    def sync_fn(product_id, location_id, horizon, method):
        seen.append((product_id, location_id, int(horizon), method.value))
        return ForecastResult(average_daily=2.0)

    async def async_fn(product_id, location_id, horizon, method):
        return ForecastResult(average_daily=3.0)

    orchestrator = RefreshOrchestrator(cache, settings)
    sync_entry = asyncio.run(orchestrator.get_or_refresh(KEY, CallableRecomputer(sync_fn)))
    other_key = CacheKey.build("P2", "L1", 60, "ewma")
    async_entry = asyncio.run(orchestrator.get_or_refresh(other_key, CallableRecomputer(async_fn)))

    assert seen == [("P1", None, 30, "moving_avg")]
    assert sync_entry.result.average_daily == 2.0
    assert async_entry.result.average_daily == 3.0
    assert async_entry.location_id == "L1"


class GatedRecomputer(Recomputer):
    """First call blocks until released; later calls return immediately."""

    def __init__(self):
        self.calls = 0
        self.release = None

    async def recompute(self, key):
        self.calls += 1
        call = self.calls
        if call == 1:
            await self.release.wait()
        return ForecastResult(average_daily=float(call))


def test_older_recompute_cannot_overwrite_newer_result(cache, settings):
    recomputer = GatedRecomputer()
    orchestrator = RefreshOrchestrator(cache, settings, recomputer)

    async def scenario():
        recomputer.release = asyncio.Event()
        slow = asyncio.ensure_future(orchestrator.get_or_refresh(KEY))
        await asyncio.sleep(0)
        fast = await orchestrator.get_or_refresh(KEY)
        recomputer.release.set()
        return await slow, fast

    slow_entry, fast_entry = asyncio.run(scenario())

    assert slow_entry.result.average_daily == 1.0
    assert fast_entry.result.average_daily == 2.0
    assert cache.get(KEY).result.average_daily == 2.0
    assert orchestrator._issued == {} and orchestrator._written == {}


def test_disabled_cache_always_recomputes(cache, recomputer):
    settings = SettingsProvider(refresh=CacheRefreshSettings(enabled=False))
    orchestrator = RefreshOrchestrator(cache, settings, recomputer)

    asyncio.run(orchestrator.get_or_refresh(KEY))
    asyncio.run(orchestrator.get_or_refresh(KEY))

    assert len(recomputer.calls) == 2
    assert len(cache) == 0


def test_engine_recomputer_forecasts_from_sales_history(cache, settings):
    end = datetime.now().date() - timedelta(days=1)
    history = InMemorySalesHistory(sales_events("P1", [3] * 60, end=end))
    orchestrator = RefreshOrchestrator(cache, settings, EngineRecomputer(history, settings))

    entry = asyncio.run(orchestrator.get_or_refresh(KEY))

    assert entry.result.method == "moving_avg"
    assert entry.result.average_daily == 3.0
    assert len(entry.result.daily_projection) == 30


def test_engine_recomputer_matches_direct_forecast_on_full_history(cache, settings):
    yesterday = datetime.now().date() - timedelta(days=1)
    events = (
        sales_events("P1", [1] * 300, end=yesterday - timedelta(days=70))
        + sales_events("P1", [10], end=yesterday - timedelta(days=4))
    )
    orchestrator = RefreshOrchestrator(
        cache, settings, EngineRecomputer(InMemorySalesHistory(events), settings)
    )

    entry = asyncio.run(orchestrator.get_or_refresh(KEY))
    direct = get_forecast_for_horizon(events, "P1", None, 30, "moving_avg")

    assert entry.result.method == direct.method == "moving_avg"
    assert entry.result.average_daily == direct.average_daily == 0.4


def test_tickets_are_dropped_once_no_recompute_is_in_flight(orchestrator, cache):
    asyncio.run(orchestrator.get_or_refresh(KEY))
    cache.invalidate_all()
    asyncio.run(orchestrator.get_or_refresh(CacheKey.build("P2", None, 30, "moving_avg")))

    assert orchestrator._issued == {}
    assert orchestrator._written == {}
    assert orchestrator._in_flight == {}


def test_tickets_are_dropped_after_failed_recompute(cache, settings):
    orchestrator = RefreshOrchestrator(cache, settings, CountingRecomputer(failing={"P1"}))

    asyncio.run(orchestrator.get_or_refresh(KEY))

    assert orchestrator._issued == {}
    assert orchestrator._in_flight == {}
