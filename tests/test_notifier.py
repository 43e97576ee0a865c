import asyncio

import pytest

from refcache.cache import BROAD, CacheNotifier


def test_failing_listener_does_not_stop_delivery():
    notifier = CacheNotifier()
    seen = []

    def broken(key):
        raise RuntimeError("listener bug")

    notifier.subscribe(broken)
    notifier.subscribe(seen.append)

    notifier.emit("variants_all")

    assert seen == ["variants_all"]
    assert notifier.last_key == "variants_all"


def test_unsubscribe_stops_delivery():
    notifier = CacheNotifier()
    seen = []
    unsubscribe = notifier.subscribe(seen.append)

    notifier.emit("a")
    unsubscribe()
    unsubscribe()
    notifier.emit("b")

    assert seen == ["a"]
    assert notifier.subscriber_count == 0


def test_listener_may_unsubscribe_while_notified():
    notifier = CacheNotifier()
    seen = []
    unsubscribe = None

    def once(key):
        seen.append(key)
        unsubscribe()

    unsubscribe = notifier.subscribe(once)
    notifier.subscribe(seen.append)
    notifier.emit("k")

    assert seen == ["k", "k"]


@pytest.mark.asyncio
async def test_stream_yields_events_in_emission_order():
    notifier = CacheNotifier()
    stream = notifier.stream()
    first = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)

    notifier.emit("a")
    notifier.emit(BROAD)
    notifier.emit("b")

    assert await first == "a"
    assert await stream.__anext__() is BROAD
    assert await stream.__anext__() == "b"

    await stream.aclose()
    assert notifier.subscriber_count == 0
