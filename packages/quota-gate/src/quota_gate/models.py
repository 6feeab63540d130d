from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Union

from quota_gate.errors import RateLimiterConfigError

DEFAULT_PREFIX = "rl"
DEFAULT_TOKEN_BUCKET_MAX_ATTEMPTS = 10

KeySource = Union[str, Callable[[], Union[str, Awaitable[str]]]]
LimitSource = Union[int, Callable[[], Union[int, Awaitable[int]]]]


class Algorithm(str, Enum):
    FIXED_WINDOW = "fixed_window"
    SLIDING_WINDOW = "sliding_window"
    TOKEN_BUCKET = "token_bucket"


def validate_limit(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise RateLimiterConfigError("limit must be a positive integer", {"limit": repr(value)})
    return value


def validate_logical_key(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise RateLimiterConfigError("key must be a non-empty string", {"key": repr(value)})
    return value


@dataclass(frozen=True)
class RateLimiterConfig:
    """Settings shared by every limiter created from one ``RateLimiter``."""

    prefix: str = DEFAULT_PREFIX
    token_bucket_max_attempts: int = DEFAULT_TOKEN_BUCKET_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if not isinstance(self.prefix, str) or not self.prefix:
            raise RateLimiterConfigError("prefix must be a non-empty string", {"prefix": repr(self.prefix)})
        attempts = self.token_bucket_max_attempts
        if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 1:
            raise RateLimiterConfigError(
                "token_bucket_max_attempts must be a positive integer",
                {"token_bucket_max_attempts": repr(attempts)},
            )


@dataclass(frozen=True)
class LimiterConfig:
    """One limiter definition.

    ``key`` and ``limit`` are either literals or zero-argument callables,
    sync or async, invoked again on every evaluation. Literals are checked
    here; deferred values are checked each time they resolve. For the token
    bucket ``limit`` is the bucket capacity.
    """

    algorithm: Algorithm
    key: KeySource
    window_ms: int
    limit: LimitSource
    refill_rate_per_second: float | None = None

    def __post_init__(self) -> None:
        try:
            algorithm = Algorithm(self.algorithm)
        except ValueError as exc:
            raise RateLimiterConfigError(
                "unknown rate limiting algorithm", {"algorithm": repr(self.algorithm)}
            ) from exc
        object.__setattr__(self, "algorithm", algorithm)

        window = self.window_ms
        if isinstance(window, bool) or not isinstance(window, int) or window <= 0:
            raise RateLimiterConfigError("window_ms must be a positive integer", {"window_ms": repr(window)})

        if isinstance(self.key, str):
            validate_logical_key(self.key)
        elif not callable(self.key):
            raise RateLimiterConfigError("key must be a string or a callable", {"key": repr(self.key)})

        if not callable(self.limit):
            validate_limit(self.limit)

        rate = self.refill_rate_per_second
        if algorithm is Algorithm.TOKEN_BUCKET:
            if (
                rate is None
                or isinstance(rate, bool)
                or not isinstance(rate, (int, float))
                or not math.isfinite(rate)
                or rate < 0
            ):
                raise RateLimiterConfigError(
                    "refill_rate_per_second must be a finite number >= 0 for token_bucket",
                    {"refill_rate_per_second": repr(rate)},
                )
        elif rate is not None:
            raise RateLimiterConfigError(
                "refill_rate_per_second only applies to token_bucket",
                {"algorithm": algorithm.value, "refill_rate_per_second": repr(rate)},
            )


@dataclass(frozen=True)
class AdmissionRequest:
    storage_key: str
    limit: int
    window_ms: int
    refill_rate_per_second: float = 0.0


@dataclass(frozen=True)
class EvaluationResult:
    limit: int
    allowed: bool
    remaining: int
    retry_after: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
