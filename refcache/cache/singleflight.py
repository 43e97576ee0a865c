"""
cache/singleflight.py
----------------------

In-flight load registry. At most one load task exists per key; callers
that arrive while it runs are handed the same task and so see the same
value or the same exception. The registry entry is dropped in the same
event-loop step in which the load settles, right before the success
callback runs, so nobody can observe a key that is both settled and
still in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Tuple, TypeVar

from refcache.logging_config import log_event

T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]


class SingleFlight(Generic[T]):
    def __init__(self) -> None:
        self._in_flight: Dict[str, asyncio.Task[T]] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def pending(self) -> Tuple[str, ...]:
        return tuple(self._in_flight)

    def start_or_join(
        self,
        key: str,
        producer: Producer[T],
        on_success: Callable[[T], None],
    ) -> Tuple["asyncio.Task[T]", bool]:
        """Return the load task for ``key`` and whether this call started it.

        Must be called from a running event loop. ``producer`` is only
        invoked when no task exists for ``key``; ``on_success`` belongs to
        the starting call and receives the value before any waiter
        resumes.
        """
        task = self._in_flight.get(key)
        if task is not None:
            return task, False

        task = asyncio.ensure_future(self._run(key, producer, on_success))
        # an eager task factory may already have finished the load
        if not task.done():
            self._in_flight[key] = task
        task.add_done_callback(self._settled)
        return task, True

    async def _run(self, key: str, producer: Producer[T], on_success: Callable[[T], None]) -> T:
        try:
            value = await producer()
        except BaseException:
            self._forget(key)
            raise
        self._forget(key)
        on_success(value)
        return value

    def _forget(self, key: str) -> None:
        current = asyncio.current_task()
        if self._in_flight.get(key) is current:
            del self._in_flight[key]

    @staticmethod
    def _settled(task: "asyncio.Task[Any]") -> None:
        # Retrieving the exception here keeps asyncio from reporting it as
        # "never retrieved" when every waiter went away.
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_event("cache_load_settled_with_error", logging.DEBUG, error=type(exc).__name__)
