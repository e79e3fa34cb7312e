from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    URL_NOT_ALLOWED = "URL_NOT_ALLOWED"
    UPSTREAM_FETCH_FAILED = "UPSTREAM_FETCH_FAILED"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    TRANSFORM_FAILED = "TRANSFORM_FAILED"
    STORAGE_FAILED = "STORAGE_FAILED"


# Client errors are never retried; gateway errors leave the cache untouched.
_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.URL_NOT_ALLOWED: 400,
    ErrorCode.UPSTREAM_FETCH_FAILED: 502,
    ErrorCode.UPSTREAM_TIMEOUT: 504,
    ErrorCode.TRANSFORM_FAILED: 502,
    ErrorCode.STORAGE_FAILED: 500,
}


class ProxyError(Exception):
    """Raised for all expected failure conditions of a proxy request.

    Caught by app.py and serialised into the HTTP error response.
    Never catch this inside business logic. Let it propagate to the
    HTTP layer so the caller receives a structured error with a suggestion.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    @property
    def status_code(self) -> int:
        return _STATUS_BY_CODE[self.code]

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }
