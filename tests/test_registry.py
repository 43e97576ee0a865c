import re

from refcache.cache import CacheKey, CacheKeyFamily, CacheKeys, CachePresets, CacheStrategy
from refcache.cache.registry import all_keys
from refcache.schemas.reference import CustomerVariantPrice, Warehouse


def test_registry_names_are_unique():
    names = [item.name if isinstance(item, CacheKey) else item.prefix for item in all_keys()]
    assert len(names) == len(set(names))
    assert "warehouses_all" in names
    assert "customer_prices_" in names


def test_presets_are_session_backed():
    assert CachePresets.REFERENCE_DATA.ttl == 15 * 60
    assert CachePresets.PRICE_DATA.ttl == 30 * 60
    assert CachePresets.BUSINESS_INFO.ttl == 60 * 60
    assert CachePresets.SESSION.ttl == 0
    assert all(
        preset.strategy is CacheStrategy.SESSION
        for preset in (CachePresets.REFERENCE_DATA, CachePresets.CUSTOMER_DATA, CachePresets.SESSION)
    )


def test_family_builds_keys_and_pattern():
    family: CacheKeyFamily = CacheKeys.CUSTOMER_PRICES
    key = family.key(42)
    assert key.name == "customer_prices_42"
    assert key.config is CachePresets.PRICE_DATA
    assert re.search(family.pattern, key.name)
    assert not re.search(family.pattern, "monthly_prices_42")


def test_key_parses_cached_json_into_models():
    warehouses = CacheKeys.WAREHOUSES.parse([{"id": 1, "name": "Main", "status": "ACTIVE", "extra": True}])
    assert warehouses == [Warehouse(id=1, name="Main", status="ACTIVE")]

    prices = CacheKeys.CUSTOMER_PRICES.key(7).parse([{"variantId": 2, "salePrice": 950.0}])
    assert prices == [CustomerVariantPrice(variant_id=2, sale_price=950.0)]
    assert CacheKeys.CUSTOMER_PRICES.key(7).dump(prices)[0]["salePrice"] == 950.0


def test_customer_and_bank_account_keys():
    assert CacheKeys.CUSTOMERS.name == "customers_all"
    assert CacheKeys.CUSTOMERS.config is CachePresets.CUSTOMER_DATA
    assert CachePresets.CUSTOMER_DATA.ttl == 10 * 60
    assert CacheKeys.BANK_ACCOUNTS.name == "bank_accounts_all"
    assert CacheKeys.BANK_ACCOUNTS.config is CachePresets.REFERENCE_DATA

    accounts = CacheKeys.BANK_ACCOUNTS.parse([{"id": 4, "bankName": "SBI", "accountNumber": "0012"}])
    assert accounts[0].bank_name == "SBI"
    assert CacheKeys.BANK_ACCOUNTS.dump(accounts)[0]["accountNumber"] == "0012"
