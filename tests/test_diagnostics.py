"""Tests for cache diagnostics views."""

import asyncio
from datetime import timedelta

from flowcast.models.forecast import CacheKey
from flowcast.services.diagnostics import collect_diagnostics, entries_frame
from flowcast.services.scheduler import BackgroundRefreshScheduler
from tests.conftest import make_entry


def test_collect_diagnostics_counts_freshness_and_hits(cache, orchestrator, clock):
    cache.put(make_entry("A", computed_at=clock() - timedelta(hours=30)))
    cache.put(make_entry("B", computed_at=clock() - timedelta(hours=1)))
    key = CacheKey.build("B", None, 30, "moving_avg")
    asyncio.run(orchestrator.get_or_refresh(key))
    asyncio.run(orchestrator.get_or_refresh(CacheKey.build("C", None, 30, "moving_avg")))

    diagnostics = collect_diagnostics(cache, orchestrator)

    assert diagnostics.cache_size == 3
    assert (diagnostics.fresh_count, diagnostics.stale_count) == (2, 1)
    assert (diagnostics.hit_count, diagnostics.miss_count) == (1, 1)
    assert diagnostics.hit_rate == 0.5
    assert diagnostics.last_refresh_at == clock()
    assert diagnostics.cache_keys[0] == "forecast:A:all:30:moving_avg"


def test_diagnostics_dict_reports_scheduler_status(cache, orchestrator):
    scheduler = BackgroundRefreshScheduler(orchestrator)

    payload = collect_diagnostics(cache, orchestrator, scheduler=scheduler).to_dict()

    assert payload["scheduler_status"] == "stopped"
    assert payload["hit_rate"] == 0.0
    assert payload["last_refresh_at"] is None


def test_entries_frame_lists_cached_forecasts(cache, clock):
    cache.put(make_entry("A", "L1", horizon=60, method="ewma", computed_at=clock() - timedelta(hours=3)))
    cache.put(make_entry("B"))

    frame = entries_frame(cache)

    assert list(frame["product_id"]) == ["A", "B"]
    assert list(frame.columns) == [
        'product_id', 'location_id', 'horizon', 'method', 'average_daily',
        'peak_daily', 'result_method', 'computed_at', 'age_hours'
    ]
    assert frame.loc[0, "horizon"] == 60
    assert frame.loc[0, "method"] == "ewma"
    assert frame.loc[0, "age_hours"] == 3.0


def test_entries_frame_empty_cache(cache):
    frame = entries_frame(cache)

    assert frame.empty
    assert "age_hours" in frame.columns
