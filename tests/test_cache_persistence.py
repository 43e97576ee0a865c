import orjson

from refcache.cache import (
    CacheConfig,
    CacheStrategy,
    FileStorage,
    MemoryStorage,
    PersistenceMirror,
    ReferenceCache,
)
from refcache.cache.store import build_cache
from refcache.core.config import Settings

SESSION = CacheConfig(ttl=60, strategy=CacheStrategy.SESSION)
DURABLE = CacheConfig(ttl=0, strategy=CacheStrategy.DURABLE)


def _blob(storage):
    raw = storage.get_item("_app_cache")
    return None if raw is None else orjson.loads(raw)


def test_session_entry_survives_rebuild(make_cache):
    make_cache().set("k", {"id": 1}, SESSION)
    assert make_cache().get("k") == {"id": 1}


def test_rehydrated_entry_still_expires(make_cache, clock):
    make_cache().set("k", "v", SESSION)
    clock.advance(61)
    assert make_cache().get("k") is None


def test_ephemeral_entries_are_never_written(cache, tiers):
    cache.set("k", "v")
    assert _blob(tiers[CacheStrategy.SESSION]) is None
    assert _blob(tiers[CacheStrategy.DURABLE]) is None


def test_each_tier_holds_only_its_own_entries(cache, tiers, clock):
    cache.set("users_all", ["ann"], SESSION)
    cache.set("business_info", {"agencyName": "Gas Co"}, DURABLE)
    cache.set("scratch", 1)

    session = _blob(tiers[CacheStrategy.SESSION])
    durable = _blob(tiers[CacheStrategy.DURABLE])
    assert session == {"users_all": {"value": ["ann"], "storedAt": clock.now, "ttl": 60.0}}
    assert list(durable) == ["business_info"]


def test_clear_deletes_both_tiers(make_cache, tiers):
    cache = make_cache()
    cache.set("a", 1, SESSION)
    cache.set("b", 2, DURABLE)

    cache.clear()

    assert "_app_cache" not in tiers[CacheStrategy.SESSION]
    assert "_app_cache" not in tiers[CacheStrategy.DURABLE]
    assert make_cache().stats().count == 0


def test_invalidate_rewrites_tier(make_cache):
    cache = make_cache()
    cache.set("a", 1, SESSION)
    cache.set("b", 2, SESSION)
    cache.invalidate("a")
    assert make_cache().stats().keys == ["b"]


def test_pattern_invalidation_is_mirrored(make_cache):
    cache = make_cache()
    cache.set("variants_all", [], SESSION)
    cache.set("users_all", [], DURABLE)
    cache.invalidate_pattern("variants")
    assert make_cache().stats().keys == ["users_all"]


def test_replacing_with_ephemeral_removes_persisted_copy(make_cache, tiers):
    cache = make_cache()
    cache.set("k", 1, SESSION)
    cache.set("k", 2)
    assert _blob(tiers[CacheStrategy.SESSION]) == {}
    assert make_cache().get("k") is None


def test_expired_read_rewrites_tier(cache, tiers, clock):
    cache.set("k", 1, SESSION)
    clock.advance(60)
    assert cache.get("k") is None
    assert _blob(tiers[CacheStrategy.SESSION]) == {}


def test_corrupt_blob_is_treated_as_empty(tiers, clock):
    tiers[CacheStrategy.SESSION].set_item("_app_cache", "{not json")
    tiers[CacheStrategy.DURABLE].set_item("_app_cache", "[1, 2, 3]")
    cache = ReferenceCache(PersistenceMirror(tiers), clock=clock)
    assert cache.stats().count == 0


def test_undecodable_file_blob_is_treated_as_empty(tmp_path, clock):
    (tmp_path / "_app_cache.json").write_bytes(b"\xff\xfe{bad")
    cache = ReferenceCache(PersistenceMirror({CacheStrategy.DURABLE: FileStorage(tmp_path)}), clock=clock)

    assert cache.stats().count == 0
    cache.set("business_info", {"agencyName": "Gas Co"}, DURABLE)
    restored = ReferenceCache(PersistenceMirror({CacheStrategy.DURABLE: FileStorage(tmp_path)}), clock=clock)
    assert restored.get("business_info") == {"agencyName": "Gas Co"}


def test_records_with_missing_fields_are_skipped(tiers, clock):
    tiers[CacheStrategy.SESSION].set_item("_app_cache", orjson.dumps({
        "good": {"value": 1, "storedAt": clock.now, "ttl": 0},
        "no_value": {"storedAt": clock.now, "ttl": 0},
        "bad_ttl": {"value": 1, "storedAt": clock.now, "ttl": "soon"},
        "not_a_record": 5,
    }).decode())
    cache = ReferenceCache(PersistenceMirror(tiers), clock=clock)
    assert cache.stats().keys == ["good"]


def test_newer_record_wins_across_tiers(tiers, clock):
    tiers[CacheStrategy.DURABLE].set_item("_app_cache", orjson.dumps({
        "k": {"value": "durable", "storedAt": clock.now - 10, "ttl": 0},
    }).decode())
    tiers[CacheStrategy.SESSION].set_item("_app_cache", orjson.dumps({
        "k": {"value": "session", "storedAt": clock.now - 5, "ttl": 0},
    }).decode())
    assert ReferenceCache(PersistenceMirror(tiers), clock=clock).get("k") == "session"


def test_write_failure_degrades_to_memory(clock):
    tiny = MemoryStorage(quota=10)
    cache = ReferenceCache(PersistenceMirror({CacheStrategy.SESSION: tiny}), clock=clock)

    cache.set("k", "a value far longer than ten characters", SESSION)

    assert cache.get("k") == "a value far longer than ten characters"
    assert "_app_cache" not in tiny


def test_unserialisable_value_stays_in_memory(cache, tiers):
    cache.set("k", {1, 2, 3}, SESSION)
    assert cache.get("k") == {1, 2, 3}
    assert tiers[CacheStrategy.SESSION].get_item("_app_cache") is None


def test_file_storage_round_trip(tmp_path, clock):
    tiers = {CacheStrategy.DURABLE: FileStorage(tmp_path / "durable")}
    ReferenceCache(PersistenceMirror(tiers), clock=clock).set("suppliers_all", [{"id": 3}], DURABLE)

    assert (tmp_path / "durable" / "_app_cache.json").exists()
    rebuilt = ReferenceCache(PersistenceMirror({CacheStrategy.DURABLE: FileStorage(tmp_path / "durable")}), clock=clock)
    assert rebuilt.get("suppliers_all") == [{"id": 3}]


def test_build_cache_without_persistence(tmp_path):
    settings = Settings(cache_persistence_enabled=False, cache_dir=str(tmp_path))
    cache = build_cache(settings)
    cache.set("k", 1, DURABLE)
    assert list(tmp_path.iterdir()) == []
    assert cache.get("k") == 1


def test_build_cache_uses_configured_directories(tmp_path):
    settings = Settings(cache_dir=str(tmp_path / "durable"), cache_session_dir=str(tmp_path / "session"))
    build_cache(settings).set("k", 1, SESSION)
    assert (tmp_path / "session" / "_app_cache.json").exists()
    assert build_cache(settings).get("k") == 1
