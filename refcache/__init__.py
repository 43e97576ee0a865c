"""
refcache package
----------------

Reference-data cache service for the gas agency back office: a FastAPI
application that serves warehouses, variants, suppliers, users, prices
and other lookup data from a TTL cache with tiered persistence and
single-flight loading. The ASGI app lives in :mod:`refcache.main`.
"""

__version__ = "0.1.0"
