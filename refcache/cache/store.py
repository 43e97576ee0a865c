"""
cache/store.py
---------------

The reference-data cache.

Entries live in process memory with a time to live and are evicted when
a read finds them expired. Entries written with the ``session`` or
``durable`` strategy are also mirrored, in full, to the matching
durability tier after every mutation and restored from it when the
cache is built. ``get_or_load`` adds single-flight loading on top: on a
miss, concurrent callers share one producer invocation.

The cache is single-threaded by design. All bookkeeping runs
synchronously between ``await`` points, so only the producer itself can
interleave with other cache operations. Build exactly one instance per
process (see :func:`build_cache`) and hand it to whoever needs it.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, TypeVar, Union

from refcache.cache.models import DEFAULT_CONFIG, CacheConfig, CacheEntry, CacheStrategy
from refcache.cache.notifier import BROAD, CacheNotifier
from refcache.cache.persistence import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    PersistenceMirror,
)
from refcache.cache.singleflight import Producer, SingleFlight
from refcache.core.config import Settings, get_settings
from refcache.logging_config import log_event

T = TypeVar("T")

_MISSING: Any = object()


@dataclass(frozen=True)
class CacheStats:
    count: int
    keys: List[str]


class ReferenceCache:
    """In-memory TTL cache with tiered persistence and single-flight loads.

    :param mirror: durability tiers; ``None`` keeps everything in memory
    :param clock: returns the current time in epoch seconds
    :param notifier: change channel, created when not supplied
    """

    def __init__(
        self,
        mirror: Optional[PersistenceMirror] = None,
        *,
        clock: Callable[[], float] = time.time,
        notifier: Optional[CacheNotifier] = None,
    ) -> None:
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._mirror = mirror if mirror is not None else PersistenceMirror({})
        self._clock = clock
        self._flight: SingleFlight[Any] = SingleFlight()
        # bumped when an in-flight key is invalidated; a load only stores its
        # result if the generation it started under is still current
        self._generations: Dict[str, int] = {}
        self.notifier = notifier if notifier is not None else CacheNotifier()
        self._rehydrate()

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    def _rehydrate(self) -> None:
        # durable first; the session tier wins ties only with a newer record
        for strategy in (CacheStrategy.DURABLE, CacheStrategy.SESSION):
            for key, entry in self._mirror.load(strategy).items():
                current = self._entries.get(key)
                if current is None or entry.stored_at > current.stored_at:
                    self._entries[key] = entry
        if self._entries:
            log_event("cache_rehydrated", count=len(self._entries), keys=sorted(self._entries))

    def _tier_entries(self, strategy: CacheStrategy) -> Iterator[Tuple[str, CacheEntry[Any]]]:
        return ((key, entry) for key, entry in self._entries.items() if entry.strategy is strategy)

    def _persist(self, *strategies: CacheStrategy) -> None:
        for strategy in dict.fromkeys(strategies):
            if strategy.persistent:
                self._mirror.write(strategy, self._tier_entries(strategy))

    # ------------------------------------------------------------------
    # entry store
    # ------------------------------------------------------------------
    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._persist(entry.strategy)
            log_event("cache_expired", logging.DEBUG, key=key)
            return _MISSING
        return copy.deepcopy(entry.value)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a copy of the cached value, or ``default`` when absent or expired."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any, config: Optional[CacheConfig] = None) -> None:
        config = config or DEFAULT_CONFIG
        previous = self._entries.get(key)
        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            stored_at=self._clock(),
            ttl=config.ttl,
            strategy=config.strategy,
        )
        if previous is not None:
            self._persist(config.strategy, previous.strategy)
        else:
            self._persist(config.strategy)
        self.notifier.emit(key)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        self._discard_loads([key])
        self._persist(*self._mirror.strategies)
        self.notifier.emit(BROAD)

    def invalidate_pattern(self, pattern: Union[str, "re.Pattern[str]"]) -> List[str]:
        """Drop every key in which ``pattern`` is found (``re.search``).

        Returns the removed keys. A malformed pattern raises ``re.error``
        before anything is touched.
        """
        regex = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
        removed = [key for key in self._entries if regex.search(key)]
        for key in removed:
            del self._entries[key]
        self._discard_loads([key for key in self._flight.pending() if regex.search(key)])
        self._persist(*self._mirror.strategies)
        log_event("cache_invalidate_pattern", pattern=regex.pattern, removed=removed)
        self.notifier.emit(BROAD)
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._discard_loads(self._flight.pending())
        self._mirror.remove_all()
        log_event("cache_cleared")
        self.notifier.emit(BROAD)

    def stats(self) -> CacheStats:
        return CacheStats(count=len(self._entries), keys=list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # single-flight loading
    # ------------------------------------------------------------------
    def in_flight(self, key: str) -> bool:
        return self._flight.in_flight(key)

    def _discard_loads(self, keys: Iterable[str]) -> None:
        for key in keys:
            if self._flight.in_flight(key):
                self._generations[key] = self._generations.get(key, 0) + 1

    def _store_loaded(self, key: str, generation: int, config: Optional[CacheConfig]) -> Callable[[Any], None]:
        def store(loaded: Any) -> None:
            if self._generations.pop(key, 0) != generation:
                log_event("cache_load_discarded", key=key)
                return
            self.set(key, loaded, config)
        return store

    async def get_or_load(self, key: str, producer: Producer[T], config: Optional[CacheConfig] = None) -> T:
        """Return the cached value for ``key`` or load it once.

        A hit returns without suspending and never calls ``producer``. On a
        miss the first caller starts ``producer`` and later callers join
        it; only the first caller's ``config`` is used to store the result.
        A failed load is not cached and reaches every waiter unchanged.
        Cancelling a waiter does not cancel the load. A load whose key is
        invalidated (or cleared) while it runs still answers its waiters
        but its result is not stored.
        """
        value = self._lookup(key)
        if value is not _MISSING:
            log_event("cache_hit", logging.DEBUG, key=key)
            return value

        store = self._store_loaded(key, self._generations.get(key, 0), config)
        task, started = self._flight.start_or_join(key, producer, store)
        log_event("cache_miss" if started else "cache_join", logging.DEBUG, key=key)
        try:
            return await asyncio.shield(task)
        except Exception as exc:
            if started:
                log_event("cache_load_failed", logging.WARNING, key=key,
                          error=type(exc).__name__, detail=str(exc))
            raise

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Flush every persistent tier one last time."""
        self._persist(*self._mirror.strategies)
        pending = self._flight.pending()
        if pending:
            log_event("cache_closed_with_pending_loads", logging.WARNING, keys=list(pending))


def build_cache(
    settings: Optional[Settings] = None,
    *,
    session_storage: Optional[KeyValueStorage] = None,
    durable_storage: Optional[KeyValueStorage] = None,
    clock: Callable[[], float] = time.time,
) -> ReferenceCache:
    """Create a cache wired to the tiers described by ``settings``.

    ``session_storage`` should outlive the cache when the session tier is
    memory-backed, otherwise a rebuilt cache starts empty.
    """
    settings = settings or get_settings()
    tiers: Dict[CacheStrategy, KeyValueStorage] = {}
    if settings.cache_persistence_enabled:
        if session_storage is None:
            session_storage = FileStorage(settings.cache_session_dir) if settings.cache_session_dir else MemoryStorage()
        tiers[CacheStrategy.SESSION] = session_storage
        tiers[CacheStrategy.DURABLE] = durable_storage or FileStorage(settings.cache_dir)
    return ReferenceCache(PersistenceMirror(tiers, blob_key=settings.cache_blob_key), clock=clock)
