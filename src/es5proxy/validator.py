"""Script URL validation against the fixed host allowlist.

Pure business logic: no I/O, no AppState. Rejections are raised as
ProxyError so the HTTP layer can serialise them as client errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlparse

from es5proxy.errors import ErrorCode, ProxyError
from es5proxy.models.request import ValidatedURL

if TYPE_CHECKING:
    from collections.abc import Iterable

_ALLOWED_SCHEMES = frozenset({"http", "https"})


def normalise_host(hostname: str) -> str:
    """Lowercase a hostname and drop a trailing root dot."""
    return hostname.strip().rstrip(".").lower()


def normalise_hosts(hosts: Iterable[str]) -> frozenset[str]:
    """Build the permitted-host set from configured hostnames."""
    return frozenset(normalise_host(host) for host in hosts if host.strip())


def _invalid(raw: str | None, reason: str) -> ProxyError:
    return ProxyError(
        code=ErrorCode.INVALID_INPUT,
        message=f"Invalid script URL ({reason}): {raw!r}",
        suggestion="Pass an absolute http(s) URL in the 'url' query parameter.",
        recoverable=False,
    )


def validate_url(
    raw: str | None,
    allowed_hosts: frozenset[str],
    *,
    max_length: int = 2048,
) -> ValidatedURL:
    """Parse ``raw`` and check its hostname against ``allowed_hosts``.

    ``allowed_hosts`` must already be normalised (see ``normalise_hosts``).
    Raises ProxyError(INVALID_INPUT) for missing or malformed input and
    ProxyError(URL_NOT_ALLOWED) for hosts outside the allowlist.
    """
    if not raw:
        raise _invalid(raw, "missing")
    if len(raw) > max_length:
        raise _invalid(raw[:64] + "...", f"longer than {max_length} characters")

    try:
        parsed = urlparse(raw)
        hostname = parsed.hostname
        parsed.port  # noqa: B018; raises ValueError on a malformed port
    except ValueError as exc:
        raise _invalid(raw, "unparseable") from exc

    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not hostname:
        raise _invalid(raw, "not an absolute http(s) URL")

    host = normalise_host(hostname)
    if host not in allowed_hosts:
        raise ProxyError(
            code=ErrorCode.URL_NOT_ALLOWED,
            message=f"Disallowed script host: {host}",
            suggestion="Only scripts from the configured allowlist of hosts can be proxied.",
            recoverable=False,
        )

    return ValidatedURL(url=raw, host=host)
