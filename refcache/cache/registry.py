"""
cache/registry.py
------------------

Well-known cache keys and configuration presets for reference data.

Services must take their keys and TTLs from here instead of inventing
them inline. Each key is bound to the type of value it holds; the key
validates what comes out of the cache (which, after a restore from a
durability tier, is plain JSON) back into that type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Generic, List, Tuple, TypeVar, Union

from pydantic import TypeAdapter

from refcache.cache.models import CacheConfig, CacheStrategy
from refcache.schemas.reference import (
    BankAccount,
    BusinessInfo,
    Customer,
    CustomerVariantPrice,
    CylinderVariant,
    ExpenseCategory,
    MonthlyPrice,
    PaymentMode,
    Supplier,
    User,
    Warehouse,
)

T = TypeVar("T")

_MINUTE = 60


class CachePresets:
    REFERENCE_DATA = CacheConfig(ttl=15 * _MINUTE, strategy=CacheStrategy.SESSION)
    CUSTOMER_DATA = CacheConfig(ttl=10 * _MINUTE, strategy=CacheStrategy.SESSION)
    PRICE_DATA = CacheConfig(ttl=30 * _MINUTE, strategy=CacheStrategy.SESSION)
    BUSINESS_INFO = CacheConfig(ttl=60 * _MINUTE, strategy=CacheStrategy.SESSION)
    # no age limit, gone when the session tier goes
    SESSION = CacheConfig(ttl=0, strategy=CacheStrategy.SESSION)


@lru_cache(maxsize=None)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


@dataclass(frozen=True)
class CacheKey(Generic[T]):
    """A cache key bound to its value type and default configuration."""

    name: str
    model: Any
    config: CacheConfig = CachePresets.REFERENCE_DATA

    def parse(self, raw: Any) -> T:
        return _adapter(self.model).validate_python(raw)

    def dump(self, value: T) -> Any:
        return _adapter(self.model).dump_python(value, mode="json", by_alias=True)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class CacheKeyFamily(Generic[T]):
    """Keys of the form ``<prefix><id>`` sharing a type and configuration."""

    prefix: str
    model: Any
    config: CacheConfig = CachePresets.REFERENCE_DATA

    def key(self, ident: Union[int, str]) -> CacheKey[T]:
        return CacheKey(f"{self.prefix}{ident}", self.model, self.config)

    @property
    def pattern(self) -> str:
        return "^" + re.escape(self.prefix)


class CacheKeys:
    WAREHOUSES: CacheKey[List[Warehouse]] = CacheKey("warehouses_all", List[Warehouse])
    VARIANTS: CacheKey[List[CylinderVariant]] = CacheKey("variants_all", List[CylinderVariant])
    SUPPLIERS: CacheKey[List[Supplier]] = CacheKey("suppliers_all", List[Supplier])
    CUSTOMERS: CacheKey[List[Customer]] = CacheKey("customers_all", List[Customer], CachePresets.CUSTOMER_DATA)
    USERS: CacheKey[List[User]] = CacheKey("users_all", List[User])
    BANK_ACCOUNTS: CacheKey[List[BankAccount]] = CacheKey("bank_accounts_all", List[BankAccount])
    PAYMENT_MODES: CacheKey[List[PaymentMode]] = CacheKey("payment_modes_all", List[PaymentMode])
    EXPENSE_CATEGORIES: CacheKey[List[ExpenseCategory]] = CacheKey("expense_categories_all", List[ExpenseCategory])
    BUSINESS_INFO: CacheKey[BusinessInfo] = CacheKey("business_info", BusinessInfo, CachePresets.BUSINESS_INFO)
    CUSTOMER_PRICES: CacheKeyFamily[List[CustomerVariantPrice]] = CacheKeyFamily(
        "customer_prices_", List[CustomerVariantPrice], CachePresets.PRICE_DATA
    )
    MONTHLY_PRICES: CacheKeyFamily[List[MonthlyPrice]] = CacheKeyFamily(
        "monthly_prices_", List[MonthlyPrice], CachePresets.PRICE_DATA
    )


def all_keys() -> Tuple[Union[CacheKey[Any], CacheKeyFamily[Any]], ...]:
    return tuple(
        value for name, value in vars(CacheKeys).items()
        if not name.startswith("_") and isinstance(value, (CacheKey, CacheKeyFamily))
    )


def _check_registry() -> None:
    names: List[str] = []
    for item in all_keys():
        names.append(item.name if isinstance(item, CacheKey) else item.prefix)
    if len(names) != len(set(names)):
        raise RuntimeError(f"Duplicate cache keys in registry: {sorted(names)}")
    for name in names:
        for other in names:
            if name != other and other.startswith(name) and name.endswith("_"):
                raise RuntimeError(f"Cache key {other!r} collides with family {name!r}")


_check_registry()
