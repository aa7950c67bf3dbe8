"""
Forecast Data Model
====================
Value types shared by the forecast engine, the cache and the scheduler.

ForecastResult and ForecastCacheEntry are frozen: a recompute always
produces a new object and the cache replaces entries wholesale.
"""

from dataclasses import dataclass, asdict
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Dict, NamedTuple, Optional, Tuple

import pandas as pd

from flowcast.utils.constants import CACHE_CONFIG


class Horizon(IntEnum):
    """Forecast look-ahead window in days."""
    DAYS_30 = 30
    DAYS_60 = 60
    DAYS_90 = 90


class ForecastMethod(str, Enum):
    """Algorithm used to project demand."""
    MOVING_AVERAGE = "moving_avg"
    EWMA = "ewma"


# Recorded on a ForecastResult when sparse history forced the short-window average
SPARSE_FALLBACK = "sparse_fallback"


@dataclass(frozen=True)
class DailySales:
    """
    Quantity for one calendar day.

    Whole units for history; projected days carry the (fractional) average.
    """
    date: date
    quantity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "quantity": self.quantity}


@dataclass(frozen=True)
class SalesRecord:
    """A single raw sales event as delivered by the sales history provider."""
    product_id: str
    quantity: int
    timestamp: datetime
    location_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ForecastResult:
    """
    Projected demand for one product.

    Attributes
    ----------
    daily_projection : Tuple[DailySales, ...]
        Forecast for each future day, starting tomorrow
    average_daily : float
        Projected average daily demand (rounded to one decimal)
    peak_daily : float
        Highest single-day quantity in the recent history window
    method : str
        Algorithm that actually produced the numbers
    data_points : int
        Length of the history series the projection was computed from
    """
    daily_projection: Tuple[DailySales, ...] = ()
    average_daily: float = 0.0
    peak_daily: float = 0.0
    method: str = ForecastMethod.MOVING_AVERAGE.value
    data_points: int = 0

    @property
    def total_demand(self) -> float:
        return round(sum(day.quantity for day in self.daily_projection), 1)

    def to_frame(self) -> pd.DataFrame:
        """Projection as a DataFrame with columns date, forecast."""
        return pd.DataFrame({
            "date": pd.to_datetime([day.date for day in self.daily_projection]),
            "forecast": [day.quantity for day in self.daily_projection],
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "daily_projection": [day.to_dict() for day in self.daily_projection],
            "average_daily": self.average_daily,
            "peak_daily": self.peak_daily,
            "method": self.method,
            "data_points": self.data_points,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ForecastResult":
        return cls(
            daily_projection=tuple(
                DailySales(date.fromisoformat(day["date"]), day["quantity"])
                for day in payload.get("daily_projection", [])
            ),
            average_daily=float(payload.get("average_daily", 0.0)),
            peak_daily=float(payload.get("peak_daily", 0.0)),
            method=payload.get("method", ForecastMethod.MOVING_AVERAGE.value),
            data_points=int(payload.get("data_points", 0)),
        )


class CacheKey(NamedTuple):
    """Identity of a cached forecast. Use CacheKey.build to normalise parts."""
    product_id: str
    location_id: str
    horizon: Horizon
    method: ForecastMethod

    @classmethod
    def build(
        cls,
        product_id: str,
        location_id: Optional[str],
        horizon: Any,
        method: Any
    ) -> "CacheKey":
        return cls(
            product_id=str(product_id),
            location_id=location_id or CACHE_CONFIG["all_locations_key"],
            horizon=Horizon(int(horizon)),
            method=ForecastMethod(method),
        )

    @property
    def location(self) -> Optional[str]:
        """Location id, or None when the key covers all locations."""
        if self.location_id == CACHE_CONFIG["all_locations_key"]:
            return None
        return self.location_id

    def __str__(self) -> str:
        return (
            f"forecast:{self.product_id}:{self.location_id}:"
            f"{int(self.horizon)}:{self.method.value}"
        )


@dataclass(frozen=True)
class ForecastCacheEntry:
    """A computed forecast together with the moment it was computed."""
    product_id: str
    location_id: Optional[str]
    horizon: Horizon
    method: ForecastMethod
    result: ForecastResult
    computed_at: datetime

    @property
    def key(self) -> CacheKey:
        return CacheKey.build(self.product_id, self.location_id, self.horizon, self.method)

    @classmethod
    def from_key(
        cls,
        key: CacheKey,
        result: ForecastResult,
        computed_at: datetime
    ) -> "ForecastCacheEntry":
        return cls(
            product_id=key.product_id,
            location_id=key.location,
            horizon=key.horizon,
            method=key.method,
            result=result,
            computed_at=computed_at,
        )

    def age_hours(self, now: datetime) -> float:
        return (now - self.computed_at).total_seconds() / 3600.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "location_id": self.location_id,
            "horizon": int(self.horizon),
            "method": self.method.value,
            "result": self.result.to_dict(),
            "computed_at": self.computed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ForecastCacheEntry":
        return cls(
            product_id=str(payload["product_id"]),
            location_id=payload.get("location_id"),
            horizon=Horizon(int(payload["horizon"])),
            method=ForecastMethod(payload["method"]),
            result=ForecastResult.from_dict(payload["result"]),
            computed_at=datetime.fromisoformat(payload["computed_at"]),
        )


@dataclass(frozen=True)
class ReorderSuggestion:
    """Reorder advice derived from current inventory and a forecast."""
    on_hand: float
    safety_stock: float
    average_daily: float
    lead_time_days: int
    reorder_qty_floor: Optional[int]
    cover_days: float
    days_until_reorder: int
    next_reorder_date: date
    suggested_qty: int

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["next_reorder_date"] = self.next_reorder_date.isoformat()
        return payload


@dataclass(frozen=True)
class InventoryState:
    """Current stock position of a product at a location (or all locations)."""
    product_id: str
    location_id: Optional[str] = None
    on_hand: float = 0
    safety_stock: float = 0
    reorder_point: float = 0
    reorder_qty: int = 0
    lead_time_days: int = 7


@dataclass
class CacheStats:
    """
    Accumulating cache counters.

    Only reset() clears them; it is meant for explicit operator action.
    """
    last_refresh_at: Optional[datetime] = None
    refresh_count: int = 0
    hit_count: int = 0
    miss_count: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total else 0.0

    def reset(self) -> None:
        self.last_refresh_at = None
        self.refresh_count = 0
        self.hit_count = 0
        self.miss_count = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "last_refresh_at": self.last_refresh_at.isoformat() if self.last_refresh_at else None,
            "refresh_count": self.refresh_count,
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "hit_rate": round(self.hit_rate, 4),
        }
