from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ValidatedURL(BaseModel):
    """A script URL that parsed cleanly and whose host is on the allowlist."""

    model_config = ConfigDict(frozen=True)

    url: str
    host: str  # Lowercase, no trailing dot

    def __str__(self) -> str:
        return self.url
