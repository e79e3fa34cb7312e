"""Two-tier script cache: bounded in-process memory over a directory of files.

Lookup order is memory, then disk, with disk hits promoted into memory.
Stores go to disk first and only reach memory once the file is in place, so
memory never serves a payload that is absent from disk.

Memory-tier operations are synchronous and only ever run on the event loop,
so interleaved request tasks cannot observe half-updated LRU bookkeeping.
Disk I/O runs in worker threads via ``asyncio.to_thread``.

The disk tier has no expiry or eviction. Files persist until removed by an
operator.
"""

from __future__ import annotations

import asyncio
import os
import secrets
import sys
import time
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from cachetools import TTLCache

from es5proxy.errors import ErrorCode, ProxyError
from es5proxy.keys import decode_key
from es5proxy.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from es5proxy.config import CacheSettings

log = structlog.get_logger()

CACHE_FILE_SUFFIX = ".js"


class MemoryTier:
    """LRU store with per-entry time-to-live measured from insertion."""

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        *,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: TTLCache[str, str] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=timer
        )

    @property
    def max_entries(self) -> int:
        return int(self._store.maxsize)

    def get(self, key: str) -> str | None:
        """Return the payload, refreshing its recency. Expired entries are misses."""
        return self._store.get(key)

    def set(self, key: str, content: str) -> None:
        self._store[key] = content

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        self._store.expire()
        return len(self._store)


class DiskTier:
    """One file per key under a single directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def ensure_directory(self) -> None:
        """Create the cache directory. Called once at startup."""
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}{CACHE_FILE_SUFFIX}"

    def cached_urls(self) -> list[str]:
        """List the script URLs held on disk, by file name.

        Hashed keys cannot be decoded and are listed as the key itself.
        Blocking; only called at startup.
        """
        urls = []
        for path in sorted(self.directory.glob(f"*{CACHE_FILE_SUFFIX}")):
            key = path.name.removesuffix(CACHE_FILE_SUFFIX)
            urls.append(decode_key(key) or key)
        return urls

    async def read(self, key: str) -> str | None:
        """Return the file content for ``key``, or None if there is no file.

        A single open-and-read replaces an existence check, so a file removed
        between check and read cannot surface as an error.
        """
        return await asyncio.to_thread(self._read_sync, self.path_for(key))

    async def write(self, key: str, content: str) -> None:
        """Atomically create or replace the file for ``key``."""
        await asyncio.to_thread(self._write_sync, self.path_for(key), content.encode("utf-8"))

    @staticmethod
    def _read_sync(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _write_sync(self, path: Path, data: bytes) -> None:
        # Each writer gets its own temp file; concurrent stores for one key are
        # linearised by os.replace and readers never see a partial file.
        tmp_path = path.with_name(f"{path.name}.{secrets.token_hex(8)}.tmp")
        try:
            _write_bytes_fsync(tmp_path, data)
            os.replace(tmp_path, path)
            _fsync_directory(path.parent)
        finally:
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)


class TieredCache:
    """Coordinates the memory and disk tiers. Implements CacheProtocol."""

    def __init__(self, memory: MemoryTier, disk: DiskTier) -> None:
        self.memory = memory
        self.disk = disk

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> TieredCache:
        return cls(
            memory=MemoryTier(settings.memory_max_entries, settings.memory_ttl_seconds),
            disk=DiskTier(Path(settings.dir).expanduser()),
        )

    async def lookup(self, key: str) -> CacheEntry | None:
        """Find a payload in memory, then on disk. Returns ``None`` on a miss.

        A disk hit is copied into memory before returning. Disk read failures
        are logged and treated as a miss so the caller refetches.
        """
        content = self.memory.get(key)
        if content is not None:
            return CacheEntry(key=key, content=content, tier="memory")

        try:
            content = await self.disk.read(key)
        except (OSError, UnicodeDecodeError):
            log.warning("cache_read_error", key=key, exc_info=True)
            return None

        if content is None:
            return None

        self.memory.set(key, content)
        log.debug("cache_promoted", key=key)
        return CacheEntry(key=key, content=content, tier="disk")

    async def store(self, key: str, content: str) -> None:
        """Write ``content`` to disk, then to memory.

        Raises ProxyError(STORAGE_FAILED) if the disk write fails; memory is
        left untouched in that case.
        """
        try:
            await self.disk.write(key, content)
        except OSError as exc:
            log.warning("cache_write_error", key=key, exc_info=True)
            raise ProxyError(
                code=ErrorCode.STORAGE_FAILED,
                message=f"Could not persist transformed script: {exc}",
                suggestion="Check that the cache directory exists and is writable.",
                recoverable=True,
            ) from exc

        self.memory.set(key, content)

    def stats(self) -> dict[str, object]:
        return {
            "memory_entries": len(self.memory),
            "memory_max_entries": self.memory.max_entries,
            "disk_dir": str(self.disk.directory),
        }


def _write_bytes_fsync(path: Path, data: bytes) -> None:
    with path.open("wb") as file_obj:
        file_obj.write(data)
        file_obj.flush()
        os.fsync(file_obj.fileno())


def _fsync_directory(path: Path) -> None:
    if sys.platform == "win32":
        return  # Windows does not support fsync on directory handles
    directory_fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)
