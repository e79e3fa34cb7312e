"""Request lifecycle for /proxy-es5.

Receives AppState, orchestrates validation / key derivation / cache lookup /
origin fetch / transform / store, and returns the ES5 payload.
No Starlette imports; app.py handles the HTTP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from es5proxy.keys import derive_key
from es5proxy.validator import validate_url

if TYPE_CHECKING:
    from es5proxy.models.request import ValidatedURL
    from es5proxy.state import AppState


async def handle(raw_url: str | None, state: AppState) -> str:
    """Return the transformed script for ``raw_url``.

    Raises ProxyError for rejected input, upstream failures, transform
    failures and storage failures. Nothing is cached unless the fetch,
    the transform and the disk write all succeed.
    """
    log = structlog.get_logger().bind(url=raw_url)

    validated = validate_url(
        raw_url,
        state.allowlist,
        max_length=state.settings.proxy.max_url_length,
    )
    key = derive_key(validated)

    cached = await state.cache.lookup(key)
    if cached is not None:
        log.info("cache_hit", tier=cached.tier)
        return cached.content

    log.info("cache_miss_fetching", key=key)
    if state.settings.cache.single_flight:
        return await state.in_flight.run(key, lambda: _fetch_transform_store(validated, key, state))
    return await _fetch_transform_store(validated, key, state)


async def _fetch_transform_store(validated: ValidatedURL, key: str, state: AppState) -> str:
    log = structlog.get_logger().bind(url=validated.url, key=key)

    source = await state.fetcher.fetch(validated, state.allowlist)
    transformed = await state.transformer.transform(source)
    await state.cache.store(key, transformed)

    log.info(
        "script_stored",
        source_length=len(source),
        content_length=len(transformed),
    )
    return transformed
