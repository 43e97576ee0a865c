"""
schemas/cache.py
-----------------

Request and response bodies of the cache administration endpoints.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, model_validator


class CacheStatsResponse(BaseModel):
    count: int
    keys: List[str]


class InvalidateRequest(BaseModel):
    """Either a single ``key`` or a regular expression ``pattern``."""
    key: Optional[str] = None
    pattern: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_target(self) -> "InvalidateRequest":
        if (self.key is None) == (self.pattern is None):
            raise ValueError("Provide exactly one of 'key' or 'pattern'")
        return self


class InvalidateResponse(BaseModel):
    removed: List[str]
