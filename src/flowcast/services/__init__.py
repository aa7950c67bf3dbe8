"""
Services Package
=================
Forecasting, caching and background refresh services.

Modules:
- forecaster: Daily series building and demand projection (moving average, EWMA)
- reorder: Reorder suggestions from a forecast and stock position
- providers: Sales history and inventory state collaborators
- forecast_cache: FIFO-bounded forecast cache with staleness checks
- orchestrator: Cache-first access with graceful degradation
- scheduler: Timer-driven priority refresh and prewarm
- diagnostics: Cache health reporting
"""

from flowcast.services.forecaster import (
    ewma,
    fill_missing_days,
    forecast_series,
    get_forecast_for_horizon,
    group_daily_sales,
    moving_average,
    seasonality_factors,
)
from flowcast.services.reorder import calc_suggestion, forecast_status, suggest_for_entry
from flowcast.services.providers import (
    CsvSalesHistory,
    InMemoryInventory,
    InMemorySalesHistory,
    InventoryStateProvider,
    SalesHistoryProvider,
)
from flowcast.services.forecast_cache import (
    CacheStore,
    ForecastCache,
    InMemoryCacheStore,
    JsonFileCacheStore,
    StoreResult,
)
from flowcast.services.orchestrator import (
    CallableRecomputer,
    EngineRecomputer,
    Recomputer,
    RefreshOrchestrator,
)
from flowcast.services.scheduler import BackgroundRefreshScheduler, TickReport
from flowcast.services.diagnostics import CacheDiagnostics, collect_diagnostics, entries_frame

__all__ = [
    'ewma',
    'fill_missing_days',
    'forecast_series',
    'get_forecast_for_horizon',
    'group_daily_sales',
    'moving_average',
    'seasonality_factors',
    'calc_suggestion',
    'forecast_status',
    'suggest_for_entry',
    'CsvSalesHistory',
    'InMemoryInventory',
    'InMemorySalesHistory',
    'InventoryStateProvider',
    'SalesHistoryProvider',
    'CacheStore',
    'ForecastCache',
    'InMemoryCacheStore',
    'JsonFileCacheStore',
    'StoreResult',
    'CallableRecomputer',
    'EngineRecomputer',
    'Recomputer',
    'RefreshOrchestrator',
    'BackgroundRefreshScheduler',
    'TickReport',
    'CacheDiagnostics',
    'collect_diagnostics',
    'entries_frame',
]
