"""Tests for daily series building and demand projection."""

from datetime import date, datetime, timedelta

import pytest

from flowcast.models.forecast import DailySales, SPARSE_FALLBACK
from flowcast.services.forecaster import (
    ewma,
    fill_missing_days,
    forecast_series,
    get_forecast_for_horizon,
    group_daily_sales,
    moving_average,
    round1,
    seasonality_factors,
)
from tests.conftest import TODAY, daily_series, sales_events


# ── series building ──────────────────────────────────────────

def test_group_daily_sales_sums_per_day_and_filters():
    day = datetime(2026, 10, 1, 9)
    events = [
        {"product_id": "A", "quantity": 3, "timestamp": day, "location_id": "L1"},
        {"product_id": "A", "quantity": 2, "timestamp": day + timedelta(hours=5), "location_id": "L2"},
        {"product_id": "A", "quantity": 4, "timestamp": day + timedelta(days=1), "location_id": "L1"},
        {"product_id": "B", "quantity": 50, "timestamp": day, "location_id": "L1"},
    ]

    assert group_daily_sales(events, "A") == {date(2026, 10, 1): 5, date(2026, 10, 2): 4}
    assert group_daily_sales(events, "A", "L2") == {date(2026, 10, 1): 2}
    assert group_daily_sales(events, "missing") == {}


def test_group_daily_sales_skips_malformed_records():
    day = datetime(2026, 10, 1, 9)
    events = [
        {"product_id": "A", "quantity": 3, "timestamp": day},
        {"product_id": "A", "quantity": "lots", "timestamp": day},
        {"product_id": "A", "quantity": -2, "timestamp": day},
        {"product_id": "A", "quantity": 1, "timestamp": None},
        {"product_id": None, "quantity": 7, "timestamp": day},
    ]

    assert group_daily_sales(events, "A") == {date(2026, 10, 1): 3}


def test_fill_missing_days_produces_contiguous_series():
    start, end = date(2026, 10, 1), date(2026, 10, 5)
    series = fill_missing_days({date(2026, 10, 2): 4, date(2026, 10, 5): 1}, start, end)

    assert [d.date for d in series] == [start + timedelta(days=i) for i in range(5)]
    assert [d.quantity for d in series] == [0, 4, 0, 0, 1]


def test_fill_missing_days_empty_when_start_after_end():
    assert fill_missing_days({}, date(2026, 10, 5), date(2026, 10, 1)) == []


# ── moving average ───────────────────────────────────────────

def test_moving_average_flat_history():
    result = moving_average(daily_series([10] * 28), window=28, today=TODAY)

    assert result.average_daily == 10.0
    assert result.peak_daily == 10
    assert len(result.daily_projection) == 30
    assert result.daily_projection[0] == DailySales(TODAY + timedelta(days=1), 10.0)
    assert result.daily_projection[-1].date == TODAY + timedelta(days=30)
    assert all(day.quantity == 10.0 for day in result.daily_projection)


@pytest.mark.parametrize("quantities,window", [
    ([1, 2, 3, 4, 5, 6, 7], 7),
    ([3, 0, 4], 3),
    ([1, 2, 3, 4, 5, 6], 5),
    ([1, 1, 1, 1, 1, 1, 2], 7),
    ([9, 0, 0, 2, 8, 1, 1, 3, 6], 3),
])
def test_moving_average_is_rounded_tail_mean(quantities, window):
    result = moving_average(daily_series(quantities), window=window, today=TODAY)

    assert result.average_daily == round(sum(quantities[-window:]) / window, 1)


def test_moving_average_divides_by_window_for_short_series():
    result = moving_average(daily_series([10] * 14), window=28, today=TODAY)

    assert result.average_daily == 5.0


def test_moving_average_peak_limited_to_last_60_days():
    quantities = [500] + [1] * 99
    result = moving_average(daily_series(quantities), today=TODAY)

    assert result.peak_daily == 1


def test_moving_average_empty_series():
    result = moving_average([], today=TODAY)

    assert result.average_daily == 0
    assert result.peak_daily == 0
    assert result.daily_projection == ()


def test_round1_rounds_half_up():
    assert round1(0.25) == 0.3
    assert round1(2.349) == 2.3


# ── EWMA ─────────────────────────────────────────────────────

def test_ewma_recursion_seeded_with_first_value():
    # 4 -> 0.35*8 + 0.65*4 = 5.4 -> 0.65*5.4 = 3.51
    result = ewma(daily_series([4, 8, 0]), alpha=0.35, today=TODAY)

    assert result.average_daily == 3.5
    assert result.peak_daily == 8
    assert all(day.quantity == 3.5 for day in result.daily_projection)


def test_ewma_is_deterministic():
    series = daily_series([3, 9, 0, 4, 12, 7, 1, 0, 5])

    assert ewma(series, 0.35, TODAY) == ewma(series, 0.35, TODAY)


def test_ewma_rejects_invalid_alpha():
    with pytest.raises(ValueError):
        ewma(daily_series([1, 2]), alpha=0)


def test_ewma_empty_series():
    result = ewma([], today=TODAY)

    assert (result.average_daily, result.peak_daily, result.daily_projection) == (0, 0, ())


# ── horizon forecasts ────────────────────────────────────────

def test_forecast_with_no_history_never_raises():
    result = get_forecast_for_horizon([], "P1", None, 90, "ewma", today=TODAY)

    assert result.average_daily == 0
    assert result.peak_daily == 0
    assert result.data_points == 120
    assert len(result.daily_projection) == 30
    assert all(day.quantity == 0 for day in result.daily_projection)


def test_forecast_moving_average_over_full_window():
    events = sales_events("P1", [4] * 90)
    result = get_forecast_for_horizon(events, "P1", None, 30, "moving_avg", today=TODAY)

    assert result.method == "moving_avg"
    assert result.average_daily == 4.0
    # lookback is max(30, 30 + 30) days
    assert result.data_points == 60


def test_forecast_dispatches_to_ewma():
    events = sales_events("P1", [2] * 100)
    result = get_forecast_for_horizon(events, "P1", None, 60, "ewma", today=TODAY)

    assert result.method == "ewma"
    assert result.average_daily == 2.0
    assert result.data_points == 90


def test_short_series_uses_last_seven_days():
    series = daily_series([1, 1, 1, 7, 7, 7, 7, 7, 7, 7])
    result = forecast_series(series, "ewma", min_history_days=30, today=TODAY)

    assert result.method == SPARSE_FALLBACK
    assert result.average_daily == 7.0
    assert len(result.daily_projection) == 30


def test_short_series_fallback_with_empty_series():
    result = forecast_series([], "moving_avg", today=TODAY)

    assert result.method == SPARSE_FALLBACK
    assert (result.average_daily, result.peak_daily, result.daily_projection) == (0, 0, ())


def test_recently_started_product_is_averaged_over_full_window():
    # days before the first sale count as zero demand
    events = sales_events("P1", [70, 0, 0], end=TODAY - timedelta(days=1))
    result = get_forecast_for_horizon(events, "P1", None, 30, "moving_avg", today=TODAY)

    assert result.method == "moving_avg"
    assert result.average_daily == 2.5
    assert result.data_points == 60


def test_single_sale_inside_averaging_window():
    events = sales_events("P1", [10], end=TODAY - timedelta(days=20))
    result = get_forecast_for_horizon(events, "P1", None, 30, "moving_avg", today=TODAY)

    # 10 / 28
    assert result.average_daily == 0.4


def test_ewma_is_seeded_from_start_of_window():
    events = sales_events("P1", [6] * 10)
    result = get_forecast_for_horizon(events, "P1", None, 30, "ewma", today=TODAY)

    expected = ewma(daily_series([0] * 50 + [6] * 10), 0.35, TODAY)
    assert result.method == "ewma"
    assert result.average_daily == expected.average_daily
    assert result.average_daily < 6.0


def test_older_sales_outside_window_do_not_change_forecast():
    recent = sales_events("P1", [10], end=TODAY - timedelta(days=5))
    history = sales_events("P1", [1] * 300, end=TODAY - timedelta(days=70)) + recent

    with_history = get_forecast_for_horizon(history, "P1", None, 30, "moving_avg", today=TODAY)
    window_only = get_forecast_for_horizon(recent, "P1", None, 30, "moving_avg", today=TODAY)

    assert with_history == window_only
    assert with_history.average_daily == 0.4


def test_forecast_respects_location_filter():
    events = sales_events("P1", [3] * 60, location_id="L1") + sales_events("P1", [9] * 60, location_id="L2")

    at_l1 = get_forecast_for_horizon(events, "P1", "L1", 30, "moving_avg", today=TODAY)
    everywhere = get_forecast_for_horizon(events, "P1", None, 30, "moving_avg", today=TODAY)

    assert at_l1.average_daily == 3.0
    assert everywhere.average_daily == 12.0


def test_forecast_product_with_only_old_sales_projects_zero():
    events = sales_events("P1", [5] * 10, end=TODAY - timedelta(days=200))
    result = get_forecast_for_horizon(events, "P1", None, 30, "moving_avg", today=TODAY)

    assert result.method == "moving_avg"
    assert result.average_daily == 0
    assert len(result.daily_projection) == 30


# ── seasonality ──────────────────────────────────────────────

def test_weekly_seasonality_factors():
    # 2026-10-05 is a Monday
    start = date(2026, 10, 5)
    series = [
        DailySales(start + timedelta(days=i), 20 if (start + timedelta(days=i)).weekday() == 0 else 10)
        for i in range(14)
    ]
    factors = seasonality_factors(series)

    assert len(factors) == 7
    assert factors[0] == pytest.approx(20 / (160 / 14))
    assert all(f < 1 for f in factors[1:])


def test_seasonality_neutral_cases():
    assert seasonality_factors([]) == [1.0] * 7
    assert seasonality_factors(daily_series([0, 0, 0])) == [1.0] * 7
    assert seasonality_factors(daily_series([1, 2]), pattern="monthly") == [1.0] * 12
