"""
cache/notifier.py
------------------

Broadcast channel for cache changes. Every ``set`` publishes the key it
wrote; invalidations and ``clear`` publish ``None`` ("something
changed"). Subscribers either register a callback or consume an async
stream. Emission never waits on a subscriber and one failing subscriber
does not stop delivery to the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional

from refcache.logging_config import log_event

# Published for invalidate / invalidate_pattern / clear.
BROAD = None

Listener = Callable[[Optional[str]], None]


class CacheNotifier:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._queues: List[asyncio.Queue[Optional[str]]] = []
        self.last_key: Optional[str] = BROAD

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    async def stream(self) -> AsyncIterator[Optional[str]]:
        """Yield every event emitted after the first ``__anext__`` call.

        The queue is unbounded so ``emit`` never blocks; a slow consumer
        only grows its own backlog.
        """
        queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.remove(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners) + len(self._queues)

    def emit(self, key: Optional[str]) -> None:
        self.last_key = key
        # snapshot: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception as exc:
                log_event("cache_listener_failed", logging.ERROR, key=key,
                          listener=getattr(listener, "__qualname__", repr(listener)), detail=str(exc))
        for queue in list(self._queues):
            queue.put_nowait(key)
