"""
Route aggregation package for the reference-data cache service.

Each module defines an ``APIRouter`` grouping related endpoints:
``reference`` serves the cached lookup data and forwards writes,
``cache`` administers the cache itself. ``refcache.main`` includes both
in the FastAPI application.
"""

__all__ = [
    "cache",
    "reference",
]

from . import cache, reference  # noqa: E402,F401
