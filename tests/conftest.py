"""Shared fixtures for the forecast core test suite."""

import asyncio
from datetime import date, datetime, timedelta

import pytest

from flowcast.config import CacheRefreshSettings, SettingsProvider
from flowcast.models.forecast import (
    CacheKey,
    DailySales,
    ForecastCacheEntry,
    ForecastResult,
    SalesRecord,
)
from flowcast.services.forecast_cache import ForecastCache
from flowcast.services.orchestrator import Recomputer, RefreshOrchestrator

TODAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 9, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


class CountingRecomputer(Recomputer):
    """Returns a result whose average encodes the call number; can fail per product."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def recompute(self, key: CacheKey) -> ForecastResult:
        self.calls.append(key)
        if key.product_id in self.failing:
            raise RuntimeError(f"sales source unavailable for {key.product_id}")
        return ForecastResult(average_daily=float(len(self.calls)), peak_daily=5.0)


def daily_series(quantities, end: date = TODAY - timedelta(days=1)):
    """DailySales list ending on `end`, oldest first."""
    start = end - timedelta(days=len(quantities) - 1)
    return [DailySales(start + timedelta(days=i), q) for i, q in enumerate(quantities)]


def sales_events(product_id, quantities, end: date = TODAY - timedelta(days=1), location_id=None):
    """One SalesRecord per day at noon, oldest first, ending on `end`."""
    start = end - timedelta(days=len(quantities) - 1)
    return [
        SalesRecord(
            product_id=product_id,
            quantity=q,
            timestamp=datetime.combine(start + timedelta(days=i), datetime.min.time()) + timedelta(hours=12),
            location_id=location_id,
        )
        for i, q in enumerate(quantities)
        if q
    ]


def make_entry(product_id="P1", location_id=None, horizon=30, method="moving_avg",
               computed_at=NOW, average_daily=4.0):
    key = CacheKey.build(product_id, location_id, horizon, method)
    return ForecastCacheEntry.from_key(
        key, ForecastResult(average_daily=average_daily, peak_daily=average_daily), computed_at
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ForecastCache(clock=clock)


@pytest.fixture
def settings():
    return SettingsProvider(refresh=CacheRefreshSettings(max_age_hours=24))


@pytest.fixture
def recomputer():
    return CountingRecomputer()


@pytest.fixture
def orchestrator(cache, settings, recomputer):
    return RefreshOrchestrator(cache, settings, recomputer)
