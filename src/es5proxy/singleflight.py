"""Per-key coalescing of concurrent cache-miss work.

The first caller for a key starts a task; callers arriving while it runs
await the same task and receive its result or its exception. The task is
shielded so a caller whose connection goes away does not cancel the work
the others are waiting for.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = structlog.get_logger()

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Map of key → in-flight task."""

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(work())
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            log.debug("singleflight_joined", key=key)
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Retrieve the exception so an abandoned failure is not reported as
        # "never retrieved"; waiters still receive it through the shield.
        if not task.cancelled():
            task.exception()
