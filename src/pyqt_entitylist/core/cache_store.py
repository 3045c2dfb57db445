"""
Per-engine TTL cache of fetched entity lists.

One CacheStore belongs to one engine (or one coordinator shared by the
screens of a single page); entries are keyed by entity key and never shared
through module-level state.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

from pyqt_entitylist.protocols import Entity

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class CacheEntry:
    """
    Cached list state for one entity key.

    ``data`` survives failed fetches (stale-but-available); only ``error`` and
    ``loading`` change on failure.
    """
    data: Optional[List[Entity]] = None
    timestamp: Optional[float] = None
    loading: bool = False
    error: Optional[str] = None
    error_transient: bool = False
    retry_count: int = 0

    def is_valid(self, now_ms: float, ttl_ms: int) -> bool:
        return (
            self.data is not None
            and self.timestamp is not None
            and now_ms - self.timestamp < ttl_ms
        )

    @property
    def has_data(self) -> bool:
        """True once any list has been stored, including an empty one."""
        return self.data is not None


@dataclass
class CacheStore:
    """Entity-key -> CacheEntry mapping with an injectable millisecond clock."""
    clock: Clock = monotonic_ms
    _entries: Dict[str, CacheEntry] = field(default_factory=dict)

    def entry(self, key: str) -> CacheEntry:
        """Return the entry for ``key``, creating it lazily."""
        if key not in self._entries:
            logger.debug(f"Creating cache entry for '{key}'")
            self._entries[key] = CacheEntry()
        return self._entries[key]

    def peek(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def is_valid(self, key: str, ttl_ms: int) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_valid(self.clock(), ttl_ms)

    def mark_loading(self, key: str) -> CacheEntry:
        entry = self.entry(key)
        entry.loading = True
        entry.error = None
        entry.error_transient = False
        return entry

    def store_success(self, key: str, data: List[Entity]) -> CacheEntry:
        entry = self.entry(key)
        entry.data = data
        entry.timestamp = self.clock()
        entry.loading = False
        entry.error = None
        entry.error_transient = False
        entry.retry_count = 0
        return entry

    def store_failure(self, key: str, message: str, transient: bool) -> CacheEntry:
        entry = self.entry(key)
        entry.loading = False
        entry.error = message
        entry.error_transient = transient
        return entry

    def invalidate(self, key: str) -> None:
        """Expire ``key`` without discarding its data."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.timestamp = None
            logger.debug(f"Invalidated cache entry for '{key}'")

    def keys(self) -> Iterator[str]:
        return iter(self._entries)

    def clear(self) -> None:
        self._entries.clear()
