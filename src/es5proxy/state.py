"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan,
or explicitly by tests) and handed to the request handler. There are no
module-level singletons: each AppState owns its own cache tiers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from es5proxy.singleflight import SingleFlight

if TYPE_CHECKING:
    import httpx

    from es5proxy.config import Settings
    from es5proxy.protocols import CacheProtocol, FetcherProtocol, TransformerProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every request handler."""

    settings: Settings
    cache: CacheProtocol
    fetcher: FetcherProtocol
    transformer: TransformerProtocol
    allowlist: frozenset[str] = field(default_factory=frozenset)
    http_client: httpx.AsyncClient | None = None
    in_flight: SingleFlight[str] = field(default_factory=SingleFlight)
