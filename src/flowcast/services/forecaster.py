"""
Demand Forecasting Service
===========================
Turns raw sales events into gap-free daily series and projects demand with
a moving average or an exponentially weighted moving average (EWMA).

Design Principles:
- Pure functions: the same events and reference date give the same result
- Robust: sparse history falls back to a short moving average, never raises
- Explainable: every result records which method actually produced it

Key Algorithms:
1. Moving Average
   - Sum of the last `window` days divided by `window` (not by the number of
     days present, so short series are pulled towards zero)
2. EWMA
   - smoothed = alpha * today + (1 - alpha) * smoothed_prev, seeded with the
     first day of the series
Both hold the projected value flat for the next 30 days.
"""

import math
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from flowcast.models.forecast import (
    DailySales,
    ForecastMethod,
    ForecastResult,
    Horizon,
    SPARSE_FALLBACK,
)
from flowcast.utils.constants import FORECAST_CONFIG
from flowcast.utils.logger import get_logger
from flowcast.utils.validators import SalesRecordValidator

logger = get_logger(__name__)

DateLike = Union[date, datetime, str]


def round1(value: float) -> float:
    """Round half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def group_daily_sales(
    events: Iterable[Any],
    product_id: str,
    location_id: Optional[str] = None
) -> Dict[date, int]:
    """
    Sum sales quantity per calendar day for one product.

    Parameters
    ----------
    events : iterable
        Sales records (SalesRecord objects, dicts, or a DataFrame)
    product_id : str
        Product to keep; events for other products are ignored
    location_id : str, optional
        Location to keep. None means all locations.

    Returns
    -------
    Dict[date, int]
        Total quantity per day that had sales
    """
    df, _ = SalesRecordValidator().clean(events)

    mask = df["product_id"] == str(product_id)
    if location_id:
        mask &= df["location_id"] == str(location_id)
    subset = df[mask]

    if len(subset) == 0:
        return {}

    grouped = subset.groupby(subset["timestamp"].dt.date)["quantity"].sum()
    return {day: int(qty) for day, qty in grouped.items()}


def fill_missing_days(
    daily_sales: Dict[date, int],
    start: DateLike,
    end: DateLike
) -> List[DailySales]:
    """
    Expand a sparse day->quantity map into one entry per day in [start, end].

    Days absent from the map get quantity 0. An empty list is returned when
    start is after end.
    """
    start_day, end_day = _as_date(start), _as_date(end)
    if start_day > end_day:
        return []

    index = pd.date_range(start_day, end_day, freq="D")
    by_day = pd.Series(
        {pd.Timestamp(day): qty for day, qty in daily_sales.items()},
        dtype=float
    )
    filled = by_day.reindex(index, fill_value=0)

    return [DailySales(ts.date(), int(qty)) for ts, qty in filled.items()]


def _quantities(series: Sequence[DailySales]) -> np.ndarray:
    return np.array([day.quantity for day in series], dtype=float)


def _peak(values: np.ndarray) -> float:
    peak_window = min(FORECAST_CONFIG["peak_window_days"], len(values))
    return float(max(values[-peak_window:].max(), 0.0))


def _projection(value: float, today: Optional[date]) -> tuple:
    today = today or date.today()
    return tuple(
        DailySales(today + timedelta(days=offset), value)
        for offset in range(1, FORECAST_CONFIG["projection_days"] + 1)
    )


def moving_average(
    series: Sequence[DailySales],
    window: int = FORECAST_CONFIG["moving_average_window"],
    today: Optional[date] = None
) -> ForecastResult:
    """
    Forecast demand as the average of the last `window` days.

    Parameters
    ----------
    series : sequence of DailySales
        Gap-free daily history, oldest first
    window : int
        Number of trailing days averaged (default 28)
    today : date, optional
        Reference date; the projection starts the day after

    Returns
    -------
    ForecastResult
        Flat 30-day projection at the rounded average. An empty series (or
        non-positive window) gives zeros and an empty projection.
    """
    if len(series) == 0 or window <= 0:
        return ForecastResult(method=ForecastMethod.MOVING_AVERAGE.value, data_points=len(series))

    values = _quantities(series)
    average = round1(max(values[-window:].sum() / window, 0.0))

    return ForecastResult(
        daily_projection=_projection(average, today),
        average_daily=average,
        peak_daily=_peak(values),
        method=ForecastMethod.MOVING_AVERAGE.value,
        data_points=len(series),
    )


def ewma(
    series: Sequence[DailySales],
    alpha: float = FORECAST_CONFIG["ewma_alpha"],
    today: Optional[date] = None
) -> ForecastResult:
    """
    Forecast demand with exponentially weighted smoothing.

    The recursion is seeded with the first day's quantity, which is what
    pandas computes with ``adjust=False``.
    """
    if not 0 < alpha <= 1:
        raise ValueError(f"EWMA alpha must be in (0, 1], got {alpha}")

    if len(series) == 0:
        return ForecastResult(method=ForecastMethod.EWMA.value)

    values = _quantities(series)
    smoothed = pd.Series(values).ewm(alpha=alpha, adjust=False).mean().iloc[-1]
    average = round1(max(float(smoothed), 0.0))

    return ForecastResult(
        daily_projection=_projection(average, today),
        average_daily=average,
        peak_daily=_peak(values),
        method=ForecastMethod.EWMA.value,
        data_points=len(series),
    )


def get_forecast_for_horizon(
    events: Iterable[Any],
    product_id: str,
    location_id: Optional[str],
    horizon: Union[Horizon, int],
    method: Union[ForecastMethod, str],
    min_history_days: int = FORECAST_CONFIG["min_history_days"],
    alpha: float = FORECAST_CONFIG["ewma_alpha"],
    today: Optional[date] = None
) -> ForecastResult:
    """
    Forecast one product (optionally at one location) for a horizon.

    The lookback window is max(min_history_days, horizon + 30) days ending
    yesterday, zero-filled over its whole length, so days without sales
    (including days before a product first sold) pull the average down.
    With no history at all the result is a flat zero projection.
    """
    today = today or date.today()
    horizon = Horizon(int(horizon))

    daily_sales = group_daily_sales(events, product_id, location_id)

    history_days = max(min_history_days, int(horizon) + FORECAST_CONFIG["history_padding_days"])
    window_start = today - timedelta(days=history_days)
    window_end = today - timedelta(days=1)
    series = fill_missing_days(daily_sales, window_start, window_end)

    return forecast_series(series, method, min_history_days, alpha, today)


def forecast_series(
    series: Sequence[DailySales],
    method: Union[ForecastMethod, str],
    min_history_days: int = FORECAST_CONFIG["min_history_days"],
    alpha: float = FORECAST_CONFIG["ewma_alpha"],
    today: Optional[date] = None
) -> ForecastResult:
    """
    Dispatch a gap-free series to the requested method.

    A series shorter than `min_history_days` ignores the requested method
    and averages its last (up to) 7 days instead.
    """
    method = ForecastMethod(method)

    if len(series) < min_history_days:
        recent_days = min(FORECAST_CONFIG["sparse_fallback_days"], len(series))
        recent = list(series[-recent_days:]) if recent_days else []
        logger.debug(
            f"Sparse history ({len(series)} < {min_history_days} days), "
            f"using {recent_days}-day average"
        )
        return replace(moving_average(recent, recent_days, today), method=SPARSE_FALLBACK)

    if method == ForecastMethod.EWMA:
        return ewma(series, alpha, today)
    return moving_average(series, today=today)


def seasonality_factors(
    series: Sequence[DailySales],
    pattern: str = "weekly"
) -> List[float]:
    """
    Relative demand factor per period.

    Weekly: one factor per weekday (0=Monday), the weekday's average divided
    by the overall average; 1.0 where a weekday has no data or overall demand
    is zero. Monthly: twelve neutral factors.
    """
    if pattern == "monthly":
        return [1.0] * 12
    if pattern != "weekly":
        raise ValueError(f"Unknown seasonality pattern: {pattern}")

    if len(series) == 0:
        return [1.0] * 7

    frame = pd.DataFrame({
        "weekday": [day.date.weekday() for day in series],
        "quantity": _quantities(series),
    })
    overall = frame["quantity"].mean()
    if overall <= 0:
        return [1.0] * 7

    by_weekday = frame.groupby("weekday")["quantity"].mean() / overall
    return [float(by_weekday.get(weekday, 1.0)) for weekday in range(7)]
