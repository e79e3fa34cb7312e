"""Shared test fixtures for the es5proxy test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from es5proxy.cache import DiskTier, MemoryTier, TieredCache
from es5proxy.config import Settings
from es5proxy.errors import ErrorCode, ProxyError
from es5proxy.validator import normalise_hosts

if TYPE_CHECKING:
    from pathlib import Path

ALLOWED_HOST = "www.googletagmanager.com"
SCRIPT_URL = f"https://{ALLOWED_HOST}/gtag/js?id=G-TEST"


class FakeClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransformer:
    """Rewrites ``let``/``const`` to ``var``; input containing SYNTAX ERROR fails."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def transform(self, code: str) -> str:
        self.calls.append(code)
        if "SYNTAX ERROR" in code:
            raise ProxyError(
                code=ErrorCode.TRANSFORM_FAILED,
                message="Failed to transpile script: unexpected token",
                suggestion="The upstream script could not be parsed as JavaScript.",
            )
        return code.replace("const ", "var ").replace("let ", "var ")


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture()
def settings(cache_dir: Path) -> Settings:
    return Settings(cache={"dir": str(cache_dir), "memory_max_entries": 3})


@pytest.fixture()
def allowlist(settings: Settings) -> frozenset[str]:
    return normalise_hosts(settings.proxy.allowed_hosts)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory(settings: Settings, clock: FakeClock) -> MemoryTier:
    return MemoryTier(
        settings.cache.memory_max_entries,
        settings.cache.memory_ttl_seconds,
        timer=clock,
    )


@pytest.fixture()
def disk(cache_dir: Path) -> DiskTier:
    return DiskTier(cache_dir)


@pytest.fixture()
def cache(memory: MemoryTier, disk: DiskTier) -> TieredCache:
    """A fresh two-tier cache per test; no state is shared between tests."""
    return TieredCache(memory=memory, disk=disk)


@pytest.fixture()
def transformer() -> FakeTransformer:
    return FakeTransformer()
