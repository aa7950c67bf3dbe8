"""
Reorder Suggestion Service
===========================
Converts a demand forecast and the current stock position into reorder
advice: how long stock lasts, when to reorder, and how much.

Formula (all quantities in units, demand in units/day):
- daily demand      = max(1, average daily forecast)
- cover days        = max(0, (on hand - safety stock) / daily demand)
- days until reorder = max(0, floor(cover days) - lead time)
- target need       = (lead time + 14 day buffer) * daily demand + safety stock
- suggested qty     = max(0, reorder floor, ceil(target need - on hand))
"""

import math
from datetime import date, timedelta
from typing import Optional

from flowcast.models.forecast import ForecastCacheEntry, ReorderSuggestion
from flowcast.services.forecaster import round1
from flowcast.utils.constants import REORDER_CONFIG
from flowcast.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_CRITICAL = "critical"
STATUS_ACTION_NEEDED = "action_needed"
STATUS_HEALTHY = "healthy"


def calc_suggestion(
    on_hand: float,
    safety_stock: float,
    average_daily: float,
    lead_time_days: int,
    reorder_qty_floor: Optional[int] = None,
    today: Optional[date] = None
) -> ReorderSuggestion:
    """
    Compute a reorder suggestion.

    Parameters
    ----------
    on_hand : float
        Units currently in stock
    safety_stock : float
        Buffer units that should never be consumed
    average_daily : float
        Forecast average daily demand
    lead_time_days : int
        Days between placing and receiving an order
    reorder_qty_floor : int, optional
        Minimum order quantity; the suggestion never goes below it
    today : date, optional
        Reference date for the next reorder date

    Returns
    -------
    ReorderSuggestion
        ``average_daily`` on the suggestion is the demand actually used,
        i.e. after the minimum of 1 unit/day is applied.
    """
    today = today or date.today()
    daily = max(REORDER_CONFIG["min_daily_demand"], average_daily)

    cover_days = max(0.0, (on_hand - safety_stock) / daily)
    days_until_reorder = max(0, math.floor(cover_days) - lead_time_days)

    target_need = (lead_time_days + REORDER_CONFIG["buffer_days"]) * daily + safety_stock
    floor_qty = reorder_qty_floor or 0
    suggested_qty = max(0, max(floor_qty, math.ceil(target_need - on_hand)))

    return ReorderSuggestion(
        on_hand=on_hand,
        safety_stock=safety_stock,
        average_daily=daily,
        lead_time_days=lead_time_days,
        reorder_qty_floor=reorder_qty_floor,
        cover_days=round1(cover_days),
        days_until_reorder=days_until_reorder,
        next_reorder_date=today + timedelta(days=days_until_reorder),
        suggested_qty=int(suggested_qty),
    )


def forecast_status(suggestion: ReorderSuggestion) -> str:
    """
    Classify a suggestion for alerting.

    critical: stock runs out within the lead time
    action_needed: an order is suggested
    healthy: nothing to do
    """
    if suggestion.cover_days <= suggestion.lead_time_days:
        return STATUS_CRITICAL
    if suggestion.suggested_qty > 0:
        return STATUS_ACTION_NEEDED
    return STATUS_HEALTHY


def suggest_for_entry(
    inventory_provider,
    entry: ForecastCacheEntry,
    lead_time_days: Optional[int] = None,
    today: Optional[date] = None
) -> ReorderSuggestion:
    """Suggestion for a cached forecast using the provider's current stock."""
    state = inventory_provider.get_state(entry.product_id, entry.location_id)
    lead_time = lead_time_days if lead_time_days is not None else state.lead_time_days

    suggestion = calc_suggestion(
        on_hand=state.on_hand,
        safety_stock=state.safety_stock,
        average_daily=entry.result.average_daily,
        lead_time_days=lead_time,
        reorder_qty_floor=state.reorder_qty or None,
        today=today,
    )
    logger.debug(
        f"Suggestion for {entry.key}: qty={suggestion.suggested_qty}, "
        f"cover={suggestion.cover_days} days, status={forecast_status(suggestion)}"
    )
    return suggestion
