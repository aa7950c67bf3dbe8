"""
Models Package
===============
Value types for the forecast core.

Modules:
- forecast: daily series, forecast results, cache entries and statistics
"""

from flowcast.models.forecast import (
    CacheKey,
    CacheStats,
    DailySales,
    ForecastCacheEntry,
    ForecastMethod,
    ForecastResult,
    Horizon,
    InventoryState,
    ReorderSuggestion,
    SalesRecord,
    SPARSE_FALLBACK,
)

__all__ = [
    'CacheKey',
    'CacheStats',
    'DailySales',
    'ForecastCacheEntry',
    'ForecastMethod',
    'ForecastResult',
    'Horizon',
    'InventoryState',
    'ReorderSuggestion',
    'SalesRecord',
    'SPARSE_FALLBACK',
]
