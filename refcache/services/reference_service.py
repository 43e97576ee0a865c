"""
services/reference_service.py
-----------------------------

Reference data (warehouses, variants, suppliers, customers, users, bank
accounts, payment modes, expense categories, business info and prices)
read through the cache.

Every read goes through :meth:`ReferenceCache.get_or_load` with a key
from the registry, so concurrent requests for the same list share one
upstream call. A payload is validated against the key's model before
it is cached, so a malformed response fails the load instead of sitting
in the cache; what is stored is the model dumped back to JSON. Writes
are forwarded upstream and then invalidate whatever they made stale.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from refcache.cache.registry import CacheKey, CacheKeys
from refcache.cache.store import ReferenceCache
from refcache.clients.http_client import HTTPClient
from refcache.core.config import Settings, get_settings
from refcache.logging_config import log_call, logger
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

# upstream page size when a list endpoint is paginated
_PAGE_SIZE = 200


def _content(payload: Any) -> List[Dict[str, Any]]:
    """Flatten a list payload, accepting bare lists or ``{"content": [...]}`` pages."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return payload.get("content") or payload.get("items") or []
    return []


class ReferenceDataService:
    def __init__(self, cache: ReferenceCache, client: HTTPClient, settings: Settings | None = None) -> None:
        self.cache = cache
        self.client = client
        self.settings = settings or get_settings()

    async def _load(self, key: CacheKey[Any], path: str, *, paged: bool = False, single: bool = False) -> Any:
        async def producer() -> Any:
            if paged:
                payload = await self._fetch_all_pages(path)
            else:
                payload = await self.client.get_json(path)
                if not single:
                    payload = _content(payload)
            return key.dump(key.parse(payload))

        raw = await self.cache.get_or_load(key.name, producer, key.config)
        return key.parse(raw)

    async def _fetch_all_pages(self, path: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 0
        while True:
            payload = await self.client.get_json(path, params={"page": page, "size": _PAGE_SIZE})
            chunk = _content(payload)
            items.extend(chunk)
            last = payload.get("last") if isinstance(payload, dict) else True
            if not chunk or last is None or last:
                break
            page += 1
        return items

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    @log_call
    async def list_warehouses(self) -> List[Warehouse]:
        return await self._load(CacheKeys.WAREHOUSES, "/warehouses")

    @log_call
    async def list_variants(self) -> List[CylinderVariant]:
        return await self._load(CacheKeys.VARIANTS, "/variants/active/list")

    @log_call
    async def list_suppliers(self) -> List[Supplier]:
        return await self._load(CacheKeys.SUPPLIERS, "/suppliers", paged=True)

    @log_call
    async def list_customers(self) -> List[Customer]:
        return await self._load(CacheKeys.CUSTOMERS, "/customers/active/list")

    @log_call
    async def list_users(self) -> List[User]:
        return await self._load(CacheKeys.USERS, "/users")

    @log_call
    async def list_bank_accounts(self) -> List[BankAccount]:
        return await self._load(CacheKeys.BANK_ACCOUNTS, "/bank-accounts/active/list")

    @log_call
    async def list_payment_modes(self) -> List[PaymentMode]:
        return await self._load(CacheKeys.PAYMENT_MODES, "/payment-modes/active")

    @log_call
    async def list_expense_categories(self) -> List[ExpenseCategory]:
        return await self._load(CacheKeys.EXPENSE_CATEGORIES, "/expense-categories/active")

    @log_call
    async def get_business_info(self) -> BusinessInfo:
        return await self._load(CacheKeys.BUSINESS_INFO, f"/business-info/{self.settings.business_id}", single=True)

    @log_call
    async def customer_prices(self, customer_id: int) -> List[CustomerVariantPrice]:
        key = CacheKeys.CUSTOMER_PRICES.key(customer_id)
        return await self._load(key, f"/customers/{customer_id}/variant-prices")

    @log_call
    async def monthly_prices(self, variant_id: int) -> List[MonthlyPrice]:
        key = CacheKeys.MONTHLY_PRICES.key(variant_id)
        return await self._load(key, f"/monthly-prices/variant/{variant_id}")

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def _invalidated(self, event: str, *keys: str) -> None:
        logger.info(json.dumps({"event": event, "invalidated": list(keys)}))

    @log_call
    async def save_warehouse(self, warehouse: Warehouse) -> Warehouse:
        body = warehouse.model_dump(mode="json", by_alias=True, exclude_none=True)
        if warehouse.id is None:
            saved = await self.client.send_json("POST", "/warehouses", json=body)
        else:
            saved = await self.client.send_json("PUT", f"/warehouses/{warehouse.id}", json=body)
        self.cache.invalidate(CacheKeys.WAREHOUSES.name)
        self._invalidated("warehouse_saved", CacheKeys.WAREHOUSES.name)
        return Warehouse.model_validate(saved) if saved else warehouse

    @log_call
    async def save_variant(self, variant: CylinderVariant) -> CylinderVariant:
        body = variant.model_dump(mode="json", by_alias=True, exclude_none=True)
        if variant.id is None:
            saved = await self.client.send_json("POST", "/variants", json=body)
        else:
            saved = await self.client.send_json("PUT", f"/variants/{variant.id}", json=body)
        removed = self._drop_variant_data()
        self._invalidated("variant_saved", *removed)
        return CylinderVariant.model_validate(saved) if saved else variant

    @log_call
    async def delete_variant(self, variant_id: int) -> None:
        await self.client.send_json("DELETE", f"/variants/{variant_id}")
        removed = self._drop_variant_data()
        self._invalidated("variant_deleted", *removed)

    def _drop_variant_data(self) -> List[str]:
        # variant names are denormalised into both price families
        removed = self.cache.invalidate_pattern("variants")
        removed += self.cache.invalidate_pattern(CacheKeys.MONTHLY_PRICES.pattern)
        removed += self.cache.invalidate_pattern(CacheKeys.CUSTOMER_PRICES.pattern)
        return removed

    @log_call
    async def save_supplier(self, supplier: Supplier) -> Supplier:
        body = supplier.model_dump(mode="json", by_alias=True, exclude_none=True)
        if supplier.id is None:
            saved = await self.client.send_json("POST", "/suppliers", json=body)
        else:
            saved = await self.client.send_json("PUT", f"/suppliers/{supplier.id}", json=body)
        self.cache.invalidate(CacheKeys.SUPPLIERS.name)
        self._invalidated("supplier_saved", CacheKeys.SUPPLIERS.name)
        return Supplier.model_validate(saved) if saved else supplier

    @log_call
    async def save_customer_price(self, customer_id: int, price: CustomerVariantPrice) -> CustomerVariantPrice:
        body = price.model_dump(mode="json", by_alias=True, exclude_none=True)
        saved = await self.client.send_json(
            "PUT", f"/customers/{customer_id}/variant-prices/{price.variant_id}", json=body
        )
        key = CacheKeys.CUSTOMER_PRICES.key(customer_id).name
        self.cache.invalidate(key)
        self._invalidated("customer_price_saved", key)
        return CustomerVariantPrice.model_validate(saved) if saved else price

    @log_call
    async def save_monthly_price(self, price: MonthlyPrice) -> MonthlyPrice:
        body = price.model_dump(mode="json", by_alias=True, exclude_none=True)
        if price.id is None:
            saved = await self.client.send_json("POST", "/monthly-prices", json=body)
        else:
            saved = await self.client.send_json("PUT", f"/monthly-prices/{price.id}", json=body)
        key = CacheKeys.MONTHLY_PRICES.key(price.variant_id).name
        self.cache.invalidate(key)
        self._invalidated("monthly_price_saved", key)
        return MonthlyPrice.model_validate(saved) if saved else price

    @log_call
    async def save_customer(self, customer: Customer) -> Customer:
        body = customer.model_dump(mode="json", by_alias=True, exclude_none=True)
        if customer.id is None:
            saved = await self.client.send_json("POST", "/customers", json=body)
        else:
            saved = await self.client.send_json("PUT", f"/customers/{customer.id}", json=body)
        self.cache.invalidate(CacheKeys.CUSTOMERS.name)
        self._invalidated("customer_saved", CacheKeys.CUSTOMERS.name)
        return Customer.model_validate(saved) if saved else customer

    @log_call
    async def save_bank_account(self, account: BankAccount) -> BankAccount:
        body = account.model_dump(mode="json", by_alias=True, exclude_none=True)
        if account.id is None:
            saved = await self.client.send_json("POST", "/bank-accounts", json=body)
        else:
            saved = await self.client.send_json("PUT", f"/bank-accounts/{account.id}", json=body)
        self.cache.invalidate(CacheKeys.BANK_ACCOUNTS.name)
        self._invalidated("bank_account_saved", CacheKeys.BANK_ACCOUNTS.name)
        return BankAccount.model_validate(saved) if saved else account
