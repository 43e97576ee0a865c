"""
core/config.py
----------------

Application configuration module.

Defines strongly‑typed settings loaded from the environment using
``pydantic-settings``. These settings control the upstream API
location, HTTP timeouts and retries, and where the reference-data
cache keeps its durable copies. The values provided here are sensible
defaults but can be overridden via environment variables at
deployment time.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The settings structure is flat and uses environment variables
    prefixed with ``APP_``.  For example, to move the durable cache
    tier you can set ``APP_CACHE_DIR=/var/lib/refcache``.
    """

    # Upstream gas agency API
    api_base_url: str = Field("http://localhost:8080/api", description="Base URL of the upstream REST API.")
    business_id: int = Field(1, ge=1, description="Business whose agency details are served.")

    # HTTP client settings
    http_timeout: float = Field(30.0, description="Hard timeout for upstream requests in seconds.")
    http_max_retries: int = Field(3, ge=0, description="Maximum number of retries for idempotent operations (GET).")
    http_backoff_factor: float = Field(0.5, ge=0, description="Backoff factor for exponential retry delays.")

    # Reference-data cache
    cache_persistence_enabled: bool = Field(True, description="Mirror session/durable entries to storage.")
    cache_blob_key: str = Field("_app_cache", description="Item name of the serialised cache in each tier.")
    cache_dir: str = Field(".refcache", description="Directory backing the durable tier.")
    cache_session_dir: Optional[str] = Field(
        None,
        description="Directory backing the session tier. When unset the session tier lives in process memory.",
    )

    model_config = SettingsConfigDict(env_prefix="APP_", env_file=None, case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached instance of the application settings.

    Using a cache prevents expensive environment parsing on every call.
    """
    return Settings()
