"""Origin fetcher for allowlisted third-party scripts.

All outbound requests go through a single Fetcher instance shared across
requests. The Fetcher receives an httpx.AsyncClient via constructor
injection. The app lifespan owns the client lifecycle.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import httpx
import structlog

from es5proxy.errors import ErrorCode, ProxyError
from es5proxy.validator import validate_url

if TYPE_CHECKING:
    from es5proxy.config import FetcherSettings
    from es5proxy.models.request import ValidatedURL

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )


class Fetcher:
    """Single-attempt script fetcher with allowlist-checked redirects."""

    def __init__(self, client: httpx.AsyncClient, settings: FetcherSettings) -> None:
        self._client = client
        self._settings = settings

    async def fetch(self, url: ValidatedURL, allowlist: frozenset[str]) -> str:
        """Fetch a script and return its text.

        The whole exchange, redirects included, is bounded by the configured
        timeout. There are no retries. Raises ProxyError on timeouts, network
        errors, non-2xx responses and redirects that leave the allowlist; all of
        them are gateway errors.
        """
        try:
            return await asyncio.wait_for(
                self._fetch(url, allowlist),
                timeout=self._settings.timeout_seconds,
            )
        except TimeoutError as exc:
            raise _timeout_error(url.url) from exc

    async def _fetch(self, url: ValidatedURL, allowlist: frozenset[str]) -> str:
        current_url = url.url
        max_redirects = self._settings.max_redirects

        try:
            for hop in range(max_redirects + 1):
                if hop > 0:
                    _check_redirect_target(url.url, current_url, allowlist)

                response = await self._client.get(current_url)

                if response.is_redirect and "location" in response.headers:
                    if hop == max_redirects:
                        raise ProxyError(
                            code=ErrorCode.UPSTREAM_FETCH_FAILED,
                            message=f"Too many redirects fetching {url}",
                            suggestion="The script URL has an unusually long redirect chain.",
                            recoverable=False,
                        )
                    current_url = urljoin(current_url, response.headers["location"])
                    log.debug("fetch_redirect", url=url.url, location=current_url)
                    continue

                if not response.is_success:
                    raise ProxyError(
                        code=ErrorCode.UPSTREAM_FETCH_FAILED,
                        message=f"HTTP {response.status_code} fetching {url}",
                        suggestion="The script origin may be temporarily unavailable.",
                        recoverable=response.status_code >= 500,
                    )

                log.info(
                    "fetch_complete",
                    url=url.url,
                    status_code=response.status_code,
                    content_length=len(response.text),
                )
                return response.text

        except ProxyError:
            raise
        except httpx.TimeoutException as exc:
            raise _timeout_error(url.url) from exc
        except httpx.HTTPError as exc:
            raise ProxyError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The script origin may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        # Unreachable but satisfies the type checker
        raise ProxyError(
            code=ErrorCode.UPSTREAM_FETCH_FAILED,
            message="Redirect loop",
            suggestion="",
            recoverable=False,
        )


def _check_redirect_target(origin_url: str, target: str, allowlist: frozenset[str]) -> None:
    """Refuse a redirect hop that leaves the allowlist, before requesting it.

    The caller asked for an allowed URL, so an off-list hop is the origin's
    fault and surfaces as a gateway error.
    """
    try:
        validate_url(target, allowlist)
    except ProxyError as exc:
        log.warning("fetch_redirect_rejected", url=origin_url, location=target, reason=exc.code)
        raise ProxyError(
            code=ErrorCode.UPSTREAM_FETCH_FAILED,
            message=f"Origin redirected {origin_url} to a disallowed location: {target}",
            suggestion="The script origin redirects outside the permitted hosts.",
            recoverable=False,
        ) from exc


def _timeout_error(url: str) -> ProxyError:
    return ProxyError(
        code=ErrorCode.UPSTREAM_TIMEOUT,
        message=f"Timed out fetching {url}",
        suggestion="The script origin is slow to respond; try again later.",
        recoverable=True,
    )
