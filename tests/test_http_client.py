import httpx
import pytest

from refcache.clients.http_client import ApiError, CircuitBreaker, HTTPClient, unwrap_envelope
from refcache.core.config import Settings


def _client(handler, retries=0):
    settings = Settings(api_base_url="http://upstream.test/api/", http_max_retries=retries, http_backoff_factor=0)
    return HTTPClient(settings, transport=httpx.MockTransport(handler))


def test_unwrap_envelope():
    assert unwrap_envelope({"message": "ok", "data": [1, 2]}) == [1, 2]
    assert unwrap_envelope([1, 2]) == [1, 2]
    assert unwrap_envelope({"id": 1}) == {"id": 1}
    with pytest.raises(ApiError) as info:
        unwrap_envelope({"message": "failed", "error": {"code": "E1", "details": "name taken"}})
    assert info.value.detail == "name taken"


def test_circuit_breaker_trips_and_resets():
    breaker = CircuitBreaker(failure_threshold=2, reset_timeout=0)
    breaker.record_failure("api")
    assert breaker.can_request("api")
    breaker.record_failure("api")
    # zero cooldown: the next check already resets it
    assert breaker.can_request("api")

    slow = CircuitBreaker(failure_threshold=1, reset_timeout=60)
    slow.record_failure("api")
    assert not slow.can_request("api")
    slow.record_success("api")
    assert slow.can_request("api")


@pytest.mark.asyncio
async def test_get_json_joins_base_url_and_unwraps():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json={"message": "ok", "data": [{"id": 1}]})

    client = _client(handler)
    assert await client.get_json("/warehouses") == [{"id": 1}]
    assert seen == ["http://upstream.test/api/warehouses"]
    await client.aclose()


@pytest.mark.asyncio
async def test_get_retries_server_errors():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=[])

    client = _client(handler, retries=2)
    assert await client.get_json("/users") == []
    assert len(attempts) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_post_is_not_retried_and_errors_raise():
    attempts = []

    def handler(request):
        attempts.append(request.method)
        return httpx.Response(500, json={"message": "database down"})

    client = _client(handler, retries=3)
    with pytest.raises(ApiError) as info:
        await client.send_json("POST", "/warehouses", json={"name": "North"})
    assert info.value.status_code == 500
    assert info.value.detail == "database down"
    assert attempts == ["POST"]
    await client.aclose()


@pytest.mark.asyncio
async def test_no_content_returns_none():
    client = _client(lambda request: httpx.Response(204))
    assert await client.send_json("DELETE", "/variants/3") is None
    await client.aclose()
