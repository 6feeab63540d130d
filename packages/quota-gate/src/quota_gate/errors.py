from __future__ import annotations

from typing import Any


class RateLimiterError(Exception):
    """Base rate limiter exception carrying structured context in ``cause``."""

    def __init__(self, message: str, cause: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.cause: dict[str, Any] = dict(cause or {})


class RateLimiterConfigError(RateLimiterError, ValueError):
    """Raised when a window, limit, refill rate, prefix or key is invalid."""


class RateLimiterStoreError(RateLimiterError):
    """Raised when a Redis round trip failed. No admission decision was made."""


class RateLimiterContentionError(RateLimiterStoreError):
    """Raised when a token bucket update kept losing the compare-and-swap race."""
