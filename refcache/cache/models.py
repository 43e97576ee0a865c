"""
cache/models.py
----------------

Value types shared by the cache components: the durability strategy,
the per-write configuration and the stored entry itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class CacheStrategy(str, Enum):
    """Durability tier an entry is mirrored to."""

    EPHEMERAL = "ephemeral"  # memory only
    SESSION = "session"  # survives a cache rebuild inside the session
    DURABLE = "durable"  # survives a process restart

    @property
    def persistent(self) -> bool:
        return self is not CacheStrategy.EPHEMERAL


@dataclass(frozen=True)
class CacheConfig:
    """How an entry is kept once written.

    ``ttl`` is in seconds; ``0`` means the entry never expires by age and
    only goes away through invalidation, ``clear`` or (for ephemeral and
    session entries) the end of its tier.
    """

    ttl: float = 0
    strategy: CacheStrategy = CacheStrategy.EPHEMERAL

    def __post_init__(self) -> None:
        if self.ttl < 0:
            raise ValueError("ttl must be >= 0")
        # accept plain strings ("session") from callers and settings
        object.__setattr__(self, "strategy", CacheStrategy(self.strategy))


DEFAULT_CONFIG = CacheConfig()


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    ttl: float = 0
    strategy: CacheStrategy = CacheStrategy.EPHEMERAL

    def is_expired(self, now: float) -> bool:
        return self.ttl > 0 and now - self.stored_at >= self.ttl

    def to_record(self) -> Dict[str, Any]:
        """Flat record written to a durability tier."""
        return {"value": self.value, "storedAt": self.stored_at, "ttl": self.ttl}

    @classmethod
    def from_record(cls, record: Any, strategy: CacheStrategy) -> Optional["CacheEntry[Any]"]:
        """Rebuild an entry from a persisted record, or ``None`` if unusable."""
        if not isinstance(record, dict) or "value" not in record:
            return None
        stored_at = record.get("storedAt")
        ttl = record.get("ttl")
        # bool is an int subclass; reject it explicitly
        for number in (stored_at, ttl):
            if isinstance(number, bool) or not isinstance(number, (int, float)):
                return None
        if ttl < 0:
            return None
        return cls(value=record["value"], stored_at=float(stored_at), ttl=float(ttl), strategy=strategy)
