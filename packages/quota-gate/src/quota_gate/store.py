from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Protocol

from redis.exceptions import RedisError

from quota_gate.errors import RateLimiterStoreError


class RedisLikePipeline(Protocol):
    async def watch(self, *names: str) -> Any: ...

    def multi(self) -> None: ...

    async def execute(self, raise_on_error: bool = True) -> list[Any]: ...

    async def reset(self) -> None: ...

    async def __aenter__(self) -> RedisLikePipeline: ...

    async def __aexit__(self, exc_type, exc_value, traceback) -> None: ...


class RedisLikeLimiterClient(Protocol):
    async def incr(self, name: str, amount: int = 1) -> int: ...

    async def pexpire(self, name: str, time: int) -> bool: ...

    async def pttl(self, name: str) -> int: ...

    async def zremrangebyscore(self, name: str, min: float | str, max: float | str) -> int: ...

    async def zcard(self, name: str) -> int: ...

    async def zadd(self, name: str, mapping: dict[str, float]) -> int: ...

    async def zrange(self, name: str, start: int, end: int, withscores: bool = False) -> list[Any]: ...

    async def hmget(self, name: str, keys: list[str], *args: str) -> list[Any]: ...

    async def hset(self, name: str, mapping: dict[str, Any] | None = None) -> int: ...

    def pipeline(self, transaction: bool = True) -> RedisLikePipeline: ...


def as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


@contextmanager
def translate_store_errors(operation: str, storage_key: str) -> Iterator[None]:
    """Re-raise Redis and socket failures as ``RateLimiterStoreError``."""
    try:
        yield
    except RateLimiterStoreError:
        raise
    except (RedisError, OSError) as exc:
        raise RateLimiterStoreError(
            f"redis round trip failed during {operation}",
            {"operation": operation, "storage_key": storage_key, "error": str(exc)},
        ) from exc
