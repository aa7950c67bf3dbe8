"""
System-Wide Constants and Configurations
==========================================
Centralized location for forecasting, cache and scheduler tuning values.

Design Principles:
- All magic numbers should be defined here
- Schemas define expected columns of sales history inputs
- Runtime-adjustable values (max age, priority products, ...) live in
  flowcast.config; these are the defaults and fixed limits behind them
"""

# =============================================================================
# SALES RECORD SCHEMA
# =============================================================================
# Raw sales events consumed by the forecast engine. Rows missing a required
# column value are skipped as data errors, never fatal.

SALES_RECORD_SCHEMA = {
    "required_columns": ["product_id", "quantity", "timestamp"],
    "optional_columns": ["location_id"],
}

# =============================================================================
# FORECASTING CONFIGURATION
# =============================================================================

FORECAST_CONFIG = {
    # Moving average looks back four weeks
    "moving_average_window": 28,

    # EWMA smoothing factor (weight of the most recent day)
    "ewma_alpha": 0.35,

    # Below this many history days the short-window fallback is used
    "min_history_days": 30,

    # Extra history on top of the horizon when building the lookback window
    "history_padding_days": 30,

    # Days in the sparse-history fallback average
    "sparse_fallback_days": 7,

    # Peak daily demand is taken over at most this many recent days
    "peak_window_days": 60,

    # Length of the projected window (days after today)
    "projection_days": 30,

    "default_method": "moving_avg",
    "horizons": (30, 60, 90),
}

# =============================================================================
# REORDER SUGGESTION CONFIGURATION
# =============================================================================

REORDER_CONFIG = {
    # Daily demand never drops below this when computing cover days
    "min_daily_demand": 1,

    # Two weeks of stock on top of the lead time
    "buffer_days": 14,

    # Used when the inventory provider has no lead time for a product
    "default_lead_time_days": 7,
}

# =============================================================================
# FORECAST CACHE CONFIGURATION
# =============================================================================

CACHE_CONFIG = {
    # Hard capacity; oldest-inserted entries are dropped first
    "max_entries": 100,

    # Entries older than this are stale and recomputed before serving
    "default_max_age_hours": 24,

    # Hygiene sweep removes entries older than multiplier * max_age_hours
    "sweep_age_multiplier": 2,

    # Location component of the cache key when no location is given
    "all_locations_key": "all",
}

# =============================================================================
# BACKGROUND REFRESH CONFIGURATION
# =============================================================================

SCHEDULER_CONFIG = {
    "default_refresh_interval_minutes": 60,

    # Priority refresh batches: size and delay between batch starts
    "batch_size": 3,
    "batch_stagger_seconds": 1.0,

    # Spacing between prewarm requests
    "prewarm_spacing_seconds": 0.2,

    # (horizon, method) pairs populated by a prewarm
    "prewarm_pairs": ((30, "moving_avg"), (60, "moving_avg")),
}

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    "datefmt": "%Y-%m-%d %H:%M:%S",
}
