"""
Flowcast - Demand Forecast & Forecast Cache Core
=================================================

Turns historical sales into per-product demand projections, caches them
under a staleness policy, and keeps priority forecasts warm in the
background.

Modules:
- config: Runtime settings (forecast defaults, cache refresh policy)
- models: Value types (daily sales, forecast results, cache entries)
- services: Forecast engine, reorder suggestions, cache, orchestrator, scheduler
- utils: Logging, validation and constants

Usage:
    from flowcast import ForecastCache, RefreshOrchestrator, EngineRecomputer

    cache = ForecastCache()
    orchestrator = RefreshOrchestrator(cache, recomputer=EngineRecomputer(sales))
    entry = await orchestrator.get_or_refresh(CacheKey.build("SKU-1", None, 30, "ewma"))
"""

__version__ = "1.0.0"

from flowcast.config import CacheRefreshSettings, ForecastSettings, SettingsProvider
from flowcast.models import CacheKey, ForecastMethod, ForecastResult, Horizon
from flowcast.services import (
    BackgroundRefreshScheduler,
    EngineRecomputer,
    ForecastCache,
    RefreshOrchestrator,
    calc_suggestion,
    get_forecast_for_horizon,
)

__all__ = [
    'CacheRefreshSettings',
    'ForecastSettings',
    'SettingsProvider',
    'CacheKey',
    'ForecastMethod',
    'ForecastResult',
    'Horizon',
    'BackgroundRefreshScheduler',
    'EngineRecomputer',
    'ForecastCache',
    'RefreshOrchestrator',
    'calc_suggestion',
    'get_forecast_for_horizon',
]
