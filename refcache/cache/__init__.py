"""
Reference-data cache package.

``ReferenceCache`` is the entry point; ``build_cache`` wires it to the
durability tiers from the application settings. Keys and presets live
in :mod:`refcache.cache.registry`.
"""

from refcache.cache.models import CacheConfig, CacheEntry, CacheStrategy
from refcache.cache.notifier import BROAD, CacheNotifier
from refcache.cache.persistence import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    PersistenceMirror,
    StorageQuotaExceeded,
)
from refcache.cache.registry import CacheKey, CacheKeyFamily, CacheKeys, CachePresets
from refcache.cache.store import CacheStats, ReferenceCache, build_cache

__all__ = [
    "BROAD",
    "CacheConfig",
    "CacheEntry",
    "CacheKey",
    "CacheKeyFamily",
    "CacheKeys",
    "CacheNotifier",
    "CachePresets",
    "CacheStats",
    "CacheStrategy",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "PersistenceMirror",
    "ReferenceCache",
    "StorageQuotaExceeded",
    "build_cache",
]
