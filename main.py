"""
Root application entry point for the reference-data cache service
=================================================================

Exposes the FastAPI application instance defined in
``refcache/main.py`` so that deployment tools like Uvicorn can import
``main:app`` from the repository root.

Usage
-----

.. code-block:: bash

    uvicorn main:app --host 0.0.0.0 --port 8000

Run a single worker: the cache lives in process memory and is not
shared between workers.
"""

from refcache.main import app  # noqa: F401 re-export for Uvicorn

__all__ = ["app"]
