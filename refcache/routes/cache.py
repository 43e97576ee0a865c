"""
routes/cache.py
---------------

Administration of the reference-data cache: statistics, explicit and
pattern invalidation, a full clear and a server-sent event stream of
cache changes for front-ends that want to re-render without polling.
"""

from __future__ import annotations

import json
import re

import orjson
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse

from refcache.cache.store import ReferenceCache
from refcache.logging_config import logger
from refcache.schemas.cache import CacheStatsResponse, InvalidateRequest, InvalidateResponse


router = APIRouter(prefix="/cache", tags=["cache"])


def get_cache(request: Request) -> ReferenceCache:
    return request.app.state.cache


@router.get("/stats", response_model=CacheStatsResponse)
def get_stats(cache: ReferenceCache = Depends(get_cache)):
    stats = cache.stats()
    return CacheStatsResponse(count=stats.count, keys=stats.keys)


@router.post("/invalidate", response_model=InvalidateResponse)
def post_invalidate(data: InvalidateRequest, cache: ReferenceCache = Depends(get_cache)):
    """Invalidate one key or every key matching a regular expression."""
    if data.key is not None:
        removed = [data.key] if data.key in cache.stats().keys else []
        cache.invalidate(data.key)
    else:
        try:
            removed = cache.invalidate_pattern(data.pattern)
        except re.error as exc:
            raise HTTPException(status_code=400, detail=f"Invalid pattern: {exc}") from exc
    logger.info(json.dumps({
        "event": "cache_invalidate_request",
        "key": data.key,
        "pattern": data.pattern,
        "removed": removed,
    }))
    return InvalidateResponse(removed=removed)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def delete_cache(cache: ReferenceCache = Depends(get_cache)):
    cache.clear()
    logger.info(json.dumps({"event": "cache_clear_request"}))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/events")
async def get_events(cache: ReferenceCache = Depends(get_cache)):
    """Stream cache changes as ``text/event-stream``; ``key`` is null for broad changes."""

    async def event_source():
        async for key in cache.notifier.stream():
            yield b"event: cache\ndata: " + orjson.dumps({"key": key}) + b"\n\n"

    return StreamingResponse(event_source(), media_type="text/event-stream")
