import pytest

from refcache.cache import CacheStrategy, MemoryStorage, PersistenceMirror, ReferenceCache


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tiers():
    return {CacheStrategy.SESSION: MemoryStorage(), CacheStrategy.DURABLE: MemoryStorage()}


@pytest.fixture
def make_cache(clock, tiers):
    """Build caches over the same storages, the way a reload would."""
    def factory():
        return ReferenceCache(PersistenceMirror(tiers), clock=clock)
    return factory


@pytest.fixture
def cache(make_cache):
    return make_cache()
