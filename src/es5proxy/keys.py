"""Cache key derivation.

Keys are URL-safe base64 of the script URL so a cache directory listing can
be decoded back to the URLs it holds. URLs whose encoding would exceed a
portable file-name length fall back to a SHA-256 digest. The ``sha256.``
prefix contains a dot, which never appears in the base64 alphabet, so the
two key spaces cannot collide.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from es5proxy.models.request import ValidatedURL

MAX_ENCODED_KEY_LENGTH = 200
HASHED_KEY_PREFIX = "sha256."


def derive_key(url: ValidatedURL | str) -> str:
    """Map a script URL to a key safe for dict lookups and as a file name."""
    raw = str(url).encode("utf-8")
    encoded = base64.urlsafe_b64encode(raw).decode("ascii")
    if len(encoded) <= MAX_ENCODED_KEY_LENGTH:
        return encoded
    return HASHED_KEY_PREFIX + hashlib.sha256(raw).hexdigest()


def decode_key(key: str) -> str | None:
    """Return the URL behind a base64 key, or None for hashed/foreign keys."""
    if key.startswith(HASHED_KEY_PREFIX):
        return None
    try:
        raw = base64.b64decode(key.encode("ascii"), altchars=b"-_", validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
