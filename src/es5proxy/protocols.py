"""Protocol interfaces for swappable components.

The request handler and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory fakes (e.g. a transformer that needs no
  JavaScript engine)
- Alternative transform backends to be swapped without changing handler code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from es5proxy.models.cache import CacheEntry
    from es5proxy.models.request import ValidatedURL


class CacheProtocol(Protocol):
    """Interface for the two-tier script cache."""

    async def lookup(self, key: str) -> CacheEntry | None: ...

    async def store(self, key: str, content: str) -> None: ...

    def stats(self) -> dict[str, object]: ...


class FetcherProtocol(Protocol):
    """Interface for the origin fetcher."""

    async def fetch(self, url: ValidatedURL, allowlist: frozenset[str]) -> str: ...


class TransformerProtocol(Protocol):
    """Interface for the source transform stage."""

    async def transform(self, code: str) -> str: ...
