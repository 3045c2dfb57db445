"""
Cache & fetch coordination for entity lists.

Serves cached lists within their TTL, joins duplicate requests onto the one
in-flight call per entity key, retries rate-limit/network failures with
capped exponential backoff and keeps the last good data when a fetch fails.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from pyqt_entitylist.protocols import Entity, EntityEngineConfig, get_engine_config, has_operation
from pyqt_entitylist.core.cache_store import CacheEntry, CacheStore
from pyqt_entitylist.core.errors import FetchError, InvalidEntitySDKError, fetch_error_from
from pyqt_entitylist.core.retry_timer import RetryTimer

logger = logging.getLogger(__name__)

SortHintProvider = Callable[[], Optional[str]]
CacheListener = Callable[[str, CacheEntry], None]


@dataclass
class EntitySource:
    """Where and how one entity key is fetched."""
    key: str
    sdk: Any
    ttl_ms: int
    entity_name_plural: str = "Items"
    sort_hint: Optional[SortHintProvider] = None


@dataclass
class _FetchOutcome:
    data: List[Entity]
    error: Optional[FetchError] = None


class FetchCoordinator:
    """
    Coordinates list() calls for a set of entity keys.

    Contract:
        await fetch(key)                     -> cached data while fresh
        await fetch(key, force_refresh=True) -> always one network call

    At most one network call per key is in flight: non-forced callers join it,
    forced callers wait for it and then issue their own.
    """

    def __init__(self, config: Optional[EntityEngineConfig] = None,
                 store: Optional[CacheStore] = None,
                 sleep: Callable[[float], Any] = asyncio.sleep):
        self._config = config or get_engine_config()
        self.store = store or CacheStore()
        self._sleep = sleep
        self._sources: Dict[str, EntitySource] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._timers: Dict[str, RetryTimer] = {}
        self._background: Set[asyncio.Task] = set()
        self._listeners: List[CacheListener] = []
        self._closed = False
        self.network_calls: Dict[str, int] = {}

    # ========== Registration ==========

    def register(self, source: EntitySource) -> None:
        if not has_operation(source.sdk, "list"):
            raise InvalidEntitySDKError(f"Entity SDK for '{source.key}' has no list() operation")
        self._sources[source.key] = source
        logger.debug(f"Registered entity source '{source.key}' (ttl={source.ttl_ms}ms)")

    def is_registered(self, key: str) -> bool:
        return key in self._sources

    def add_listener(self, listener: CacheListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CacheListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: str) -> None:
        if self._closed:
            return
        entry = self.store.entry(key)
        for listener in list(self._listeners):
            listener(key, entry)

    def _source(self, key: str) -> EntitySource:
        try:
            return self._sources[key]
        except KeyError:
            raise KeyError(f"No entity source registered for '{key}'") from None

    def _timer(self, key: str) -> RetryTimer:
        if key not in self._timers:
            self._timers[key] = RetryTimer(handler=lambda: self._retry(key))
        return self._timers[key]

    # ========== Fetching ==========

    def is_in_flight(self, key: str) -> bool:
        return key in self._inflight

    async def fetch(self, key: str, force_refresh: bool = False) -> List[Entity]:
        """Return the list for ``key``, hitting the network only when needed."""
        return await self._fetch(key, force_refresh, from_retry=False)

    async def fetch_sequential(self, keys: Iterable[str], force_refresh: bool = False) -> Dict[str, List[Entity]]:
        """Fetch several keys one after another (each real call is followed by the cooldown)."""
        results = {}
        for key in keys:
            results[key] = await self.fetch(key, force_refresh)
        return results

    async def _fetch(self, key: str, force_refresh: bool, from_retry: bool) -> List[Entity]:
        source = self._source(key)
        entry = self.store.entry(key)
        if self._closed:
            return list(entry.data or [])

        if not force_refresh and entry.is_valid(self.store.clock(), source.ttl_ms):
            logger.debug(f"Cache hit for '{key}' ({len(entry.data)} items)")
            return entry.data

        inflight = self._inflight.get(key)
        if inflight is not None:
            if not force_refresh:
                logger.debug(f"Joining in-flight fetch for '{key}'")
                outcome = await asyncio.shield(inflight)
                return outcome.data
            while key in self._inflight:
                await asyncio.shield(self._inflight[key])

        if not from_retry:
            # a caller-initiated call supersedes any scheduled retry
            self._timer(key).cancel()
            entry.retry_count = 0

        task = asyncio.get_running_loop().create_task(self._perform(source))
        self._inflight[key] = task
        outcome = await asyncio.shield(task)

        if outcome.error is not None:
            self._handle_failure(key, outcome.error)
        await self._sleep(self._config.request_cooldown_ms / 1000)
        return outcome.data

    async def _perform(self, source: EntitySource) -> _FetchOutcome:
        key = source.key
        self.store.mark_loading(key)
        self._notify(key)
        self.network_calls[key] = self.network_calls.get(key, 0) + 1
        sort_hint = source.sort_hint() if source.sort_hint else None
        try:
            result = await source.sdk.list(sort_hint)
        except asyncio.CancelledError:
            self.store.entry(key).loading = False
            raise
        except Exception as exc:
            error = fetch_error_from(key, exc, source.entity_name_plural)
            entry = self.store.store_failure(key, error.user_message, error.transient)
            self._notify(key)
            return _FetchOutcome(data=list(entry.data or []), error=error)
        else:
            data = result if isinstance(result, list) else list(result or [])
            self.store.store_success(key, data)
            logger.debug(f"Fetched {len(data)} items for '{key}'")
            self._notify(key)
            return _FetchOutcome(data=data)
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _handle_failure(self, key: str, error: FetchError) -> None:
        entry = self.store.entry(key)
        if not error.transient:
            logger.error(f"Fetch for '{key}' failed: {error.user_message}", exc_info=error.cause)
            return

        entry.retry_count += 1
        if entry.retry_count <= self._config.max_retries:
            delay_ms = self._config.backoff_delay_ms(entry.retry_count)
            logger.warning(
                f"Transient fetch failure for '{key}' ({error.kind.value}), "
                f"retry {entry.retry_count}/{self._config.max_retries} in {delay_ms}ms"
            )
            if not self._closed:
                self._timer(key).trigger(delay_ms)
        else:
            logger.error(f"Giving up on '{key}' after {self._config.max_retries} retries: {error.user_message}")
            entry.error_transient = False
            self._notify(key)

    async def _retry(self, key: str) -> None:
        if self._closed:
            return
        await self._fetch(key, force_refresh=True, from_retry=True)

    # ========== Invalidation ==========

    def request_refresh(self, key: str) -> Optional[asyncio.Task]:
        """
        Invalidate ``key`` and force-refresh it in the background.

        Without a running event loop only the invalidation happens; the next
        fetch() then goes to the network.
        """
        if self._closed or key not in self._sources:
            return None
        self.store.invalidate(key)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, '{key}' refreshes on next fetch")
            return None
        task = loop.create_task(self.fetch(key, force_refresh=True))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def retry_pending(self, key: str) -> bool:
        timer = self._timers.get(key)
        return timer is not None and timer.pending

    async def settle(self) -> None:
        """Wait until no fetch, background refresh or retry is pending."""
        while True:
            tasks = [t for t in (*self._background, *self._inflight.values()) if t is not asyncio.current_task()]
            timers = [t for t in self._timers.values() if t.pending]
            if not tasks and not timers:
                return
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            for timer in timers:
                await timer.wait()

    # ========== Teardown ==========

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Cancel retries and background refreshes; in-flight calls finish unobserved."""
        self._closed = True
        for timer in self._timers.values():
            timer.cancel()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        self._listeners.clear()
        logger.debug("FetchCoordinator closed")
