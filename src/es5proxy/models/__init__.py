from __future__ import annotations

from es5proxy.models.cache import CacheEntry
from es5proxy.models.request import ValidatedURL

__all__ = [
    # cache
    "CacheEntry",
    # request
    "ValidatedURL",
]
