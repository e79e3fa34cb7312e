"""Integration test fixtures.

Provides a fully wired AppState (real TieredCache on tmp_path, real Fetcher
over an httpx client that respx intercepts, fake transformer) and an httpx
client bound to the Starlette app through ASGITransport. Shared fixtures
come from tests/conftest.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from es5proxy.app import create_app
from es5proxy.fetcher import Fetcher
from es5proxy.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.applications import Starlette

    from es5proxy.cache import TieredCache
    from es5proxy.config import Settings
    from tests.conftest import FakeTransformer


@pytest.fixture()
async def app_state(
    settings: Settings,
    cache: TieredCache,
    transformer: FakeTransformer,
    allowlist: frozenset[str],
) -> AsyncGenerator[AppState, None]:
    async with httpx.AsyncClient() as http_client:
        yield AppState(
            settings=settings,
            cache=cache,
            fetcher=Fetcher(http_client, settings.fetcher),
            transformer=transformer,
            allowlist=allowlist,
            http_client=http_client,
        )


@pytest.fixture()
def app(app_state: AppState) -> Starlette:
    return create_app(state=app_state)


@pytest.fixture()
async def client(app: Starlette) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://proxy.test") as c:
        yield c
