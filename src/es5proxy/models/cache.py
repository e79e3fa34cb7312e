from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class CacheEntry(BaseModel):
    """A transformed script served from one of the cache tiers."""

    model_config = ConfigDict(frozen=True)

    key: str
    content: str  # Final ES5 payload, byte-identical to what was stored
    tier: Literal["memory", "disk"]
