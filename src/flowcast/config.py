"""
Flowcast - Configuration Module
================================

Runtime settings for forecasting and the forecast cache. Defaults come from
flowcast.utils.constants; a SettingsProvider holds the live values and can
persist them to a JSON file.
"""

import json
import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Set

from flowcast.utils.constants import CACHE_CONFIG, FORECAST_CONFIG, SCHEDULER_CONFIG
from flowcast.utils.logger import get_logger

logger = get_logger(__name__)

SETTINGS_PATH_ENV = "FLOWCAST_SETTINGS_PATH"


@dataclass
class ForecastSettings:
    """Default forecasting parameters used when recomputing forecasts"""
    default_method: str = FORECAST_CONFIG["default_method"]
    ewma_alpha: float = FORECAST_CONFIG["ewma_alpha"]
    min_history_days: int = FORECAST_CONFIG["min_history_days"]


@dataclass
class CacheRefreshSettings:
    """Staleness policy and background refresh behaviour"""
    enabled: bool = True
    max_age_hours: float = CACHE_CONFIG["default_max_age_hours"]
    refresh_interval_minutes: float = SCHEDULER_CONFIG["default_refresh_interval_minutes"]
    priority_product_ids: Set[str] = field(default_factory=set)
    background_refresh_enabled: bool = True

    def __post_init__(self):
        self.priority_product_ids = {str(pid) for pid in self.priority_product_ids}

    @property
    def sweep_age_hours(self) -> float:
        """Age beyond which the hygiene sweep drops an entry."""
        return self.max_age_hours * CACHE_CONFIG["sweep_age_multiplier"]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["priority_product_ids"] = sorted(self.priority_product_ids)
        return payload


def _merge(current, changes: Dict[str, Any]):
    """Return a copy of a settings dataclass with known fields replaced."""
    known = {f.name for f in fields(current)}
    unknown = set(changes) - known
    if unknown:
        logger.warning(f"Ignoring unknown settings for {type(current).__name__}: {sorted(unknown)}")
    values = asdict(current)
    values.update({k: v for k, v in changes.items() if k in known})
    return type(current)(**values)


class SettingsProvider:
    """
    Read/write access to the process-wide forecast and cache settings.

    Updates replace the settings object rather than mutating it, so a
    scheduler tick that already read the settings keeps a consistent view.

    Usage:
        provider = SettingsProvider.from_env()
        provider.update_refresh_settings(priority_product_ids={"SKU-1"})
        provider.save()
    """

    def __init__(
        self,
        forecast: Optional[ForecastSettings] = None,
        refresh: Optional[CacheRefreshSettings] = None,
        path: Optional[Path] = None
    ):
        self.forecast = forecast or ForecastSettings()
        self.refresh = refresh or CacheRefreshSettings()
        self.path = Path(path) if path else None

    @classmethod
    def from_env(cls) -> 'SettingsProvider':
        """Build a provider, loading the file named by FLOWCAST_SETTINGS_PATH if set."""
        path = os.environ.get(SETTINGS_PATH_ENV)
        provider = cls(path=Path(path) if path else None)
        if provider.path:
            provider.load()
        return provider

    def update_forecast_settings(self, **changes) -> ForecastSettings:
        self.forecast = _merge(self.forecast, changes)
        return self.forecast

    def update_refresh_settings(self, **changes) -> CacheRefreshSettings:
        self.refresh = _merge(self.refresh, changes)
        return self.refresh

    def load(self) -> bool:
        """
        Load settings from the JSON file, merged over the defaults.

        Returns False (keeping the current settings) when the file is missing
        or unreadable; the failure is logged.
        """
        if not self.path or not self.path.exists():
            return False

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading settings from {self.path}: {e}")
            return False

        try:
            self.forecast = _merge(ForecastSettings(), payload.get("forecast", {}))
            self.refresh = _merge(CacheRefreshSettings(), payload.get("refresh", {}))
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid settings in {self.path}: {e}")
            return False

        logger.info(f"Settings loaded from {self.path}")
        return True

    def save(self) -> bool:
        """Write current settings to the JSON file. Returns False on failure."""
        if not self.path:
            return False

        payload = {
            "forecast": asdict(self.forecast),
            "refresh": self.refresh.to_dict(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving settings to {self.path}: {e}")
            return False
        return True
