import httpx
import pytest
from fastapi.testclient import TestClient

from refcache.cache import MemoryStorage
from refcache.core.config import Settings
from refcache.main import create_app


@pytest.fixture
def calls():
    return []


@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_base_url="http://upstream.test/api",
        http_max_retries=0,
        cache_dir=str(tmp_path / "durable"),
    )


@pytest.fixture
def transport(calls):
    def handler(request):
        calls.append((request.method, request.url.path))
        if request.url.path == "/api/warehouses" and request.method == "GET":
            return httpx.Response(200, json={"message": "ok", "data": [{"id": 1, "name": "Main"}]})
        if request.url.path == "/api/warehouses" and request.method == "POST":
            return httpx.Response(200, json={"data": {"id": 2, "name": "North"}})
        if request.url.path == "/api/users":
            return httpx.Response(502, json={"message": "gateway"})
        if request.url.path == "/api/payment-modes/active":
            return httpx.Response(200, json=[{"id": 1, "name": "Cash"}])
        return httpx.Response(404, json={"message": "not found"})

    return httpx.MockTransport(handler)


@pytest.fixture
def client(settings, transport):
    with TestClient(create_app(settings, transport=transport)) as test_client:
        yield test_client


def test_reads_are_served_from_cache(client, calls):
    first = client.get("/reference/warehouses")
    second = client.get("/reference/warehouses")

    assert first.status_code == 200
    assert first.json()[0]["name"] == "Main"
    assert second.json() == first.json()
    assert calls.count(("GET", "/api/warehouses")) == 1
    assert client.get("/cache/stats").json() == {"count": 1, "keys": ["warehouses_all"]}


def test_write_invalidates_cached_list(client, calls):
    client.get("/reference/warehouses")
    created = client.post("/reference/warehouses", json={"name": "North"})

    assert created.status_code == 201
    assert created.json()["id"] == 2
    assert client.get("/cache/stats").json()["count"] == 0


def test_upstream_errors_keep_their_status(client):
    response = client.get("/reference/users")
    assert response.status_code == 502
    assert response.json() == {"detail": "gateway"}
    assert client.get("/cache/stats").json()["count"] == 0


def test_invalid_upstream_payload_is_a_bad_gateway(client, calls):
    for _ in range(2):
        response = client.get("/reference/payment-modes")
        assert response.status_code == 502
        assert response.json() == {"detail": "Invalid upstream payload"}

    assert calls.count(("GET", "/api/payment-modes/active")) == 2
    assert client.get("/cache/stats").json()["count"] == 0


def test_invalidate_by_key_and_pattern(client):
    client.get("/reference/warehouses")

    by_pattern = client.post("/cache/invalidate", json={"pattern": "^ware"})
    assert by_pattern.json() == {"removed": ["warehouses_all"]}

    client.get("/reference/warehouses")
    by_key = client.post("/cache/invalidate", json={"key": "warehouses_all"})
    assert by_key.json() == {"removed": ["warehouses_all"]}

    missing = client.post("/cache/invalidate", json={"key": "warehouses_all"})
    assert missing.json() == {"removed": []}


def test_invalidate_rejects_bad_requests(client):
    assert client.post("/cache/invalidate", json={"pattern": "("}).status_code == 400
    assert client.post("/cache/invalidate", json={}).status_code == 422
    assert client.post("/cache/invalidate", json={"key": "a", "pattern": "a"}).status_code == 422


def test_clear_endpoint(client):
    client.get("/reference/warehouses")
    assert client.delete("/cache").status_code == 204
    assert client.get("/cache/stats").json() == {"count": 0, "keys": []}


def test_session_tier_survives_app_restart(settings, transport, calls):
    session = MemoryStorage()
    with TestClient(create_app(settings, transport=transport, session_storage=session)) as first:
        first.get("/reference/warehouses")
    with TestClient(create_app(settings, transport=transport, session_storage=session)) as second:
        assert second.get("/cache/stats").json()["keys"] == ["warehouses_all"]
        second.get("/reference/warehouses")
    assert calls.count(("GET", "/api/warehouses")) == 1
