"""
cache/persistence.py
---------------------

Durability tiers for the reference-data cache.

Each tier is a small key/value storage holding one serialised blob:
the whole set of entries written under that tier's strategy. The
mirror rewrites the full blob after every mutation that touches the
tier and reads it back when a cache instance is built. Storage is
treated as best effort: read errors and corrupt blobs mean "no data",
write errors are logged and the cache carries on in memory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple
from urllib.parse import quote

import orjson

from refcache.cache.models import CacheEntry, CacheStrategy
from refcache.logging_config import log_event


class StorageQuotaExceeded(OSError):
    """Raised by a storage when an item would not fit."""


class KeyValueStorage(Protocol):
    """Minimal string storage, shaped like the browser Web Storage API."""

    def get_item(self, name: str) -> Optional[str]: ...

    def set_item(self, name: str, value: str) -> None: ...

    def remove_item(self, name: str) -> None: ...


class MemoryStorage:
    """Process-local storage.

    Used for the session tier: it outlives any single cache instance
    built on top of it but disappears with the process. ``quota`` caps
    the size of a single item in characters.
    """

    def __init__(self, quota: Optional[int] = None) -> None:
        self.quota = quota
        self._items: Dict[str, str] = {}

    def get_item(self, name: str) -> Optional[str]:
        return self._items.get(name)

    def set_item(self, name: str, value: str) -> None:
        if self.quota is not None and len(value) > self.quota:
            raise StorageQuotaExceeded(f"item {name!r} exceeds quota of {self.quota} characters")
        self._items[name] = value

    def remove_item(self, name: str) -> None:
        self._items.pop(name, None)

    def __contains__(self, name: object) -> bool:
        return name in self._items


class FileStorage:
    """Directory-backed storage, one file per item.

    Writes go to a temporary file that is then renamed over the target,
    so a crash mid-write leaves the previous blob intact.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{quote(name, safe='')}.json"

    def get_item(self, name: str) -> Optional[str]:
        try:
            return self._path(name).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, name: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self._path(name)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, target)

    def remove_item(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


def _encode_default(obj: Any) -> Any:
    # pydantic models stored directly instead of as raw payloads
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


class PersistenceMirror:
    """Reads and writes the per-tier blobs.

    ``tiers`` maps each persistent strategy to its storage. A strategy
    without a storage is simply not mirrored, which is how persistence
    is switched off.
    """

    def __init__(self, tiers: Mapping[CacheStrategy, KeyValueStorage], blob_key: str = "_app_cache") -> None:
        if CacheStrategy.EPHEMERAL in tiers:
            raise ValueError("the ephemeral strategy has no durability tier")
        self.blob_key = blob_key
        self._tiers: Dict[CacheStrategy, KeyValueStorage] = dict(tiers)

    @property
    def strategies(self) -> Tuple[CacheStrategy, ...]:
        return tuple(self._tiers)

    def storage(self, strategy: CacheStrategy) -> Optional[KeyValueStorage]:
        return self._tiers.get(strategy)

    def load(self, strategy: CacheStrategy) -> Dict[str, CacheEntry[Any]]:
        """Entries stored in one tier. Never raises."""
        storage = self._tiers.get(strategy)
        if storage is None:
            return {}
        try:
            raw = storage.get_item(self.blob_key)
        except (OSError, ValueError) as exc:
            # ValueError covers a blob that is not valid UTF-8
            log_event("cache_restore_failed", logging.WARNING, tier=strategy.value, detail=str(exc))
            return {}
        if not raw:
            return {}
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as exc:
            log_event("cache_restore_failed", logging.WARNING, tier=strategy.value, detail=str(exc))
            return {}
        if not isinstance(data, dict):
            log_event("cache_restore_failed", logging.WARNING, tier=strategy.value,
                      detail=f"expected an object, got {type(data).__name__}")
            return {}

        entries: Dict[str, CacheEntry[Any]] = {}
        skipped = 0
        for key, record in data.items():
            entry = CacheEntry.from_record(record, strategy)
            if entry is None:
                skipped += 1
                continue
            entries[key] = entry
        if skipped:
            log_event("cache_restore_skipped", logging.WARNING, tier=strategy.value, skipped=skipped)
        return entries

    def write(self, strategy: CacheStrategy, entries: Iterable[Tuple[str, CacheEntry[Any]]]) -> bool:
        """Replace the tier's blob with ``entries``. Returns ``False`` on failure."""
        storage = self._tiers.get(strategy)
        if storage is None:
            return False
        try:
            blob = orjson.dumps({key: entry.to_record() for key, entry in entries}, default=_encode_default)
            storage.set_item(self.blob_key, blob.decode("utf-8"))
        except (TypeError, ValueError, OSError) as exc:
            log_event("cache_persist_failed", logging.WARNING, tier=strategy.value, detail=str(exc))
            return False
        return True

    def remove_all(self) -> None:
        for strategy, storage in self._tiers.items():
            try:
                storage.remove_item(self.blob_key)
            except OSError as exc:
                log_event("cache_persist_failed", logging.WARNING, tier=strategy.value, detail=str(exc))
