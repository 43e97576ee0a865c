# main.py
from __future__ import annotations

import json
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from pydantic import ValidationError

# Import logging utilities early so that the logger configuration is
# applied before any other module emits log messages.
from refcache.logging_config import logger

from refcache.cache.persistence import KeyValueStorage, MemoryStorage
from refcache.cache.store import build_cache
from refcache.clients.http_client import ApiError, HTTPClient
from refcache.core.config import Settings, get_settings
from refcache.routes.cache import router as cache_router
from refcache.routes.reference import router as reference_router
from refcache.services.reference_service import ReferenceDataService


def create_app(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    session_storage: Optional[KeyValueStorage] = None,
    durable_storage: Optional[KeyValueStorage] = None,
) -> FastAPI:
    settings = settings or get_settings()
    # the session tier outlives the cache instances built during this process
    if session_storage is None and settings.cache_session_dir is None:
        session_storage = MemoryStorage()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # one HTTP client and one cache per process, shared by all requests
        app.state.http_client = HTTPClient(settings, transport=transport)
        app.state.cache = build_cache(settings, session_storage=session_storage, durable_storage=durable_storage)
        app.state.reference_service = ReferenceDataService(app.state.cache, app.state.http_client, settings)
        try:
            yield
        finally:
            app.state.cache.close()
            await app.state.http_client.aclose()

    app = FastAPI(default_response_class=ORJSONResponse, lifespan=lifespan)

    app.include_router(reference_router)
    app.include_router(cache_router)

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        logger.warning(json.dumps({
            "event": "upstream_error",
            "path": request.url.path,
            "status": exc.status_code,
            "detail": exc.detail,
        }))
        return ORJSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(httpx.HTTPError)
    async def handle_transport_error(request: Request, exc: httpx.HTTPError):
        logger.error(json.dumps({
            "event": "upstream_unreachable",
            "path": request.url.path,
            "detail": str(exc),
        }))
        return ORJSONResponse(status_code=502, content={"detail": "Upstream API unreachable"})

    @app.exception_handler(ValidationError)
    async def handle_invalid_payload(request: Request, exc: ValidationError):
        # request bodies are checked by FastAPI; this is upstream data
        logger.error(json.dumps({
            "event": "upstream_invalid_payload",
            "path": request.url.path,
            "errors": exc.error_count(),
            "detail": str(exc),
        }))
        return ORJSONResponse(status_code=502, content={"detail": "Invalid upstream payload"})

    # -----------------------------------------------------------------
    # Request logging middleware
    # -----------------------------------------------------------------
    # Records path, method, status code and processing time of every
    # request as one JSON log line.
    @app.middleware("http")  # type: ignore[misc]
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(json.dumps({
            "event": "http_request",
            "path": request.url.path,
            "method": request.method,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }))
        return response

    return app


app = create_app()
