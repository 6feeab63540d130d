from __future__ import annotations

import inspect
from typing import Awaitable, Callable, TypeVar, Union

from quota_gate.models import Algorithm, KeySource, LimitSource, validate_limit, validate_logical_key

T = TypeVar("T")


async def resolve_value(source: Union[T, Callable[[], Union[T, Awaitable[T]]]]) -> T:
    """Return a literal as-is, or call the producer and await it if needed.

    Producer exceptions propagate unchanged.
    """
    if not callable(source):
        return source
    result = source()
    if inspect.isawaitable(result):
        return await result
    return result


def storage_key(prefix: str, algorithm: Algorithm, logical_key: str) -> str:
    return f"{prefix}:{Algorithm(algorithm).value}:{logical_key}"


async def resolve_storage_key(prefix: str, algorithm: Algorithm, key: KeySource) -> str:
    logical_key = validate_logical_key(await resolve_value(key))
    return storage_key(prefix, algorithm, logical_key)


async def resolve_limit(limit: LimitSource) -> int:
    return validate_limit(await resolve_value(limit))
