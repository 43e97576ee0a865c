"""
clients/http_client.py
----------------------

Async HTTP client for the upstream gas agency API, with connection
pooling, timeouts, retries and a simple circuit breaker for idempotent
requests. Create one instance per process in the FastAPI lifespan and
hand it to services. It uses ``httpx.AsyncClient`` under the hood and
honours the global settings defined in :mod:`refcache.core.config`.

Retries are applied exclusively to GET requests, as these are
idempotent by definition. For non‑GET methods, the request is sent
once and any error is propagated immediately. The circuit breaker
short‑circuits requests for a host after repeated consecutive failures.

The upstream wraps payloads in ``{"message", "data", "error"}``; the
JSON helpers unwrap that envelope and turn error envelopes and
non‑2xx responses into :class:`ApiError`.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from refcache.core.config import Settings, get_settings
from refcache.logging_config import log_http_request, logger
import json


class ApiError(Exception):
    """The upstream API answered with an error."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class CircuitBreaker:
    """Simple per‑host circuit breaker.

    Tracks consecutive failures for each host and trips the breaker
    when the count reaches a threshold. The breaker resets after a
    cooldown period.
    """

    def __init__(self, failure_threshold: int = 5, reset_timeout: float = 60.0) -> None:
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._failures: Dict[str, int] = {}
        self._tripped_until: Dict[str, float] = {}

    def record_failure(self, host: str) -> None:
        self._failures[host] = self._failures.get(host, 0) + 1
        if self._failures[host] >= self.failure_threshold:
            self._tripped_until[host] = time.monotonic() + self.reset_timeout

    def record_success(self, host: str) -> None:
        self._failures.pop(host, None)
        self._tripped_until.pop(host, None)

    def can_request(self, host: str) -> bool:
        until = self._tripped_until.get(host)
        if until is None:
            return True
        if time.monotonic() >= until:
            self._tripped_until.pop(host, None)
            self._failures.pop(host, None)
            return True
        return False


def unwrap_envelope(payload: Any) -> Any:
    """Return ``data`` from an upstream envelope, raising on ``error``.

    Bodies that are not envelopes are returned unchanged.
    """
    if not isinstance(payload, dict):
        return payload
    error = payload.get("error")
    if error:
        detail = error.get("details") if isinstance(error, dict) else str(error)
        raise ApiError(400, detail or payload.get("message") or "Upstream error")
    if "data" in payload:
        return payload["data"]
    return payload


class HTTPClient:
    """Async HTTP client with retry and circuit breaker.

    ``transport`` is handed to ``httpx.AsyncClient``; tests pass an
    ``httpx.MockTransport`` here.
    """

    def __init__(self, settings: Optional[Settings] = None, *,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        settings = settings or get_settings()
        self.base_url = settings.api_base_url.rstrip("/")
        self.timeout = settings.http_timeout
        self.max_retries = settings.http_max_retries
        self.backoff_factor = settings.http_backoff_factor
        # AsyncClient keeps a connection pool
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)
        self._breaker = CircuitBreaker()

    async def aclose(self) -> None:
        """Close the underlying HTTPX client and release resources."""
        await self._client.aclose()

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a single HTTP request without retries.

        Raises ``ApiError(503)`` immediately when the breaker for the
        target host is open.
        """
        host = httpx.URL(url).host
        if not self._breaker.can_request(host):
            raise ApiError(503, f"Circuit breaker open for host {host}")
        start = time.perf_counter()
        log_http_request(method, url, headers=kwargs.get("headers"), params=kwargs.get("params"),
                         json_body=kwargs.get("json"))
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            self._breaker.record_failure(host)
            logger.error(json.dumps({
                "event": "http_error",
                "method": method,
                "url": url,
                "detail": str(exc),
            }))
            raise
        if 500 <= response.status_code < 600:
            self._breaker.record_failure(host)
        else:
            # 4xx is a client error, not a sign the host is down
            self._breaker.record_success(host)
        log_http_request(method, url, status=response.status_code,
                         duration_ms=(time.perf_counter() - start) * 1000)
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a GET request with retries and exponential backoff.

        Transport errors and 5xx responses are retried; the last response
        or exception is returned or raised once attempts run out.
        """
        last_exc: Optional[Exception] = None
        response: Optional[httpx.Response] = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._request("GET", url, **kwargs)
                last_exc = None
                if response.status_code < 500:
                    return response
            except httpx.HTTPError as exc:
                last_exc = exc
            if attempt >= self.max_retries:
                break
            await asyncio.sleep(self.backoff_factor * (2 ** attempt))
        if last_exc is not None:
            raise last_exc
        assert response is not None
        return response

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Public request method.

        For GET requests this applies retry logic. For other methods
        the request is performed once.
        """
        method_upper = method.upper()
        if method_upper == "GET":
            return await self.get(url, **kwargs)
        return await self._request(method_upper, url, **kwargs)

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        """GET ``path`` relative to the API base and return the unwrapped body."""
        return await self.send_json("GET", path, **kwargs)

    async def send_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request relative to the API base and return the unwrapped body.

        Raises :class:`ApiError` on non‑2xx responses and error envelopes.
        """
        response = await self.request(method, self.url(path), **kwargs)
        if response.is_error:
            raise ApiError(response.status_code, _error_detail(response))
        if response.status_code == 204 or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(502, f"Invalid JSON from upstream: {exc}") from exc
        return unwrap_envelope(payload)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("details"):
            return str(error["details"])
        if body.get("message"):
            return str(body["message"])
    return response.reason_phrase
