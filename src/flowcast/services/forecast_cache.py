"""
Forecast Cache
===============
Bounded store of computed forecasts keyed by
(product, location-or-"all", horizon, method).

Design Decisions:
- Capacity is fixed (100 entries). Overflow drops the oldest-inserted
  entries first; re-putting a key counts as a new insertion, reads never
  reorder (FIFO, not LRU)
- In-memory state is authoritative; an optional CacheStore mirrors it
- Store operations return a StoreResult instead of raising, so callers
  decide how to degrade

Usage:
    cache = ForecastCache(store=JsonFileCacheStore("outputs/forecast_cache.json"))
    cache.load()
    entry = cache.get(CacheKey.build("SKU-1", None, 30, "moving_avg"))
"""

import json
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from flowcast.errors import PersistenceFailure
from flowcast.models.forecast import CacheKey, ForecastCacheEntry
from flowcast.utils.constants import CACHE_CONFIG
from flowcast.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class StoreResult:
    """
    Outcome of a backing store operation.

    Attributes
    ----------
    ok : bool
        Whether the operation succeeded
    error : PersistenceFailure, optional
        The failure when ok is False
    entries : List[ForecastCacheEntry]
        Entries read by a load
    """
    ok: bool = True
    error: Optional[PersistenceFailure] = None
    entries: List[ForecastCacheEntry] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> "StoreResult":
        return cls(ok=False, error=PersistenceFailure(message))


# =============================================================================
# BACKING STORES
# =============================================================================

class CacheStore(ABC):
    """Persistence medium behind a ForecastCache."""

    @abstractmethod
    def load(self) -> StoreResult:
        """Read all entries, oldest-inserted first."""

    @abstractmethod
    def save(self, entries: List[ForecastCacheEntry]) -> StoreResult:
        """Replace the stored entries."""


class InMemoryCacheStore(CacheStore):
    """Keeps a copy of the entries in memory. Useful as a test double."""

    def __init__(self, entries: Optional[List[ForecastCacheEntry]] = None):
        self._entries = list(entries or [])

    def load(self) -> StoreResult:
        return StoreResult(entries=list(self._entries))

    def save(self, entries: List[ForecastCacheEntry]) -> StoreResult:
        self._entries = list(entries)
        return StoreResult()


class JsonFileCacheStore(CacheStore):
    """Stores entries as a JSON array in a single file."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> StoreResult:
        if not self.path.exists():
            return StoreResult()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
            entries = [ForecastCacheEntry.from_dict(item) for item in payload]
        except (OSError, ValueError, KeyError, TypeError) as e:
            return StoreResult.failure(f"Error loading forecast cache from {self.path}: {e}")
        return StoreResult(entries=entries)

    def save(self, entries: List[ForecastCacheEntry]) -> StoreResult:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump([entry.to_dict() for entry in entries], f)
        except (OSError, TypeError) as e:
            return StoreResult.failure(f"Error saving forecast cache to {self.path}: {e}")
        return StoreResult()


# =============================================================================
# CACHE
# =============================================================================

class ForecastCache:
    """
    FIFO-bounded forecast cache with staleness checks.

    Parameters
    ----------
    max_entries : int
        Capacity (default 100)
    store : CacheStore, optional
        Backing store mirrored after every mutation
    clock : callable
        Returns the current time; injectable for tests
    """

    def __init__(
        self,
        max_entries: int = CACHE_CONFIG["max_entries"],
        store: Optional[CacheStore] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.max_entries = max_entries
        self.store = store
        self.clock = clock
        self._entries: "OrderedDict[CacheKey, ForecastCacheEntry]" = OrderedDict()

    def load(self) -> StoreResult:
        """
        Populate the cache from its store.

        A failed read is logged and leaves the cache empty, so every lookup
        becomes a miss until forecasts are recomputed.
        """
        if self.store is None:
            return StoreResult()

        result = self.store.load()
        self._entries.clear()
        if not result.ok:
            logger.error(f"{result.error}; starting with an empty forecast cache")
            return result

        for entry in result.entries:
            self._insert(entry)
        self._trim()
        logger.info(f"Loaded {len(self._entries)} cached forecasts")
        return result

    def get(self, key: CacheKey) -> Optional[ForecastCacheEntry]:
        return self._entries.get(key)

    def put(self, entry: ForecastCacheEntry) -> StoreResult:
        """Insert or replace the entry for its key, then enforce capacity."""
        self._insert(entry)
        self._trim()
        return self._persist()

    def invalidate(self, product_id: str) -> int:
        """Drop every entry for a product. Returns the number removed."""
        return self._remove(lambda e: e.product_id == str(product_id), f"product {product_id}")

    def invalidate_by_location(self, location_id: str) -> int:
        """Drop every entry for a specific location."""
        return self._remove(lambda e: e.location_id == location_id, f"location {location_id}")

    def invalidate_all(self) -> int:
        return self._remove(lambda e: True, "all products")

    def is_stale(self, entry: ForecastCacheEntry, max_age_hours: float) -> bool:
        """True once the entry's age reaches max_age_hours (the boundary is stale)."""
        return entry.age_hours(self.clock()) >= max_age_hours

    def sweep_stale(self, max_age_hours: float) -> int:
        """Remove entries strictly older than max_age_hours. Returns the count removed."""
        now = self.clock()
        return self._remove(
            lambda e: e.age_hours(now) > max_age_hours,
            f"entries older than {max_age_hours}h"
        )

    def entries(self) -> List[ForecastCacheEntry]:
        """Snapshot of all entries, oldest-inserted first."""
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key) -> bool:
        return key in self._entries

    def _insert(self, entry: ForecastCacheEntry) -> None:
        key = entry.key
        # Re-insertion moves the key to the newest position
        self._entries.pop(key, None)
        self._entries[key] = entry

    def _trim(self) -> None:
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted} (capacity {self.max_entries})")

    def _remove(self, predicate: Callable[[ForecastCacheEntry], bool], label: str) -> int:
        doomed = [key for key, entry in self._entries.items() if predicate(entry)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.info(f"Removed {len(doomed)} cached forecast(s) for {label}")
            self._persist()
        return len(doomed)

    def _persist(self) -> StoreResult:
        if self.store is None:
            return StoreResult()
        result = self.store.save(self.entries())
        if not result.ok:
            logger.warning(f"{result.error}; in-memory cache still updated")
        return result
