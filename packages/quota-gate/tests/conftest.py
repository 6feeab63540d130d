from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Callable

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from quota_gate import RateLimiter


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, delta_ms: int) -> None:
        self.now_ms += delta_ms


class FakePipeline:
    def __init__(self, client: FakeRedis) -> None:
        self._client = client
        self._stack: list[tuple[str, tuple, dict]] = []
        self._watched: dict[str, int] = {}
        self._explicit = False

    async def __aenter__(self) -> FakePipeline:
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.reset()

    async def watch(self, *names: str) -> bool:
        await asyncio.sleep(0)
        for name in names:
            self._client._purge(name)
            self._watched[name] = self._client._versions[name]
        return True

    def multi(self) -> None:
        self._explicit = True

    async def reset(self) -> None:
        self._stack = []
        self._watched = {}
        self._explicit = False

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def command(*args, **kwargs):
            if self._watched and not self._explicit:
                return self._client._run(name, *args, **kwargs)
            self._stack.append((name, args, kwargs))
            return self

        return command

    async def execute(self, raise_on_error: bool = True) -> list[Any]:
        await asyncio.sleep(0)
        try:
            if self._watched and self._client.before_exec:
                self._client.before_exec.pop(0)(self._client)
            for name, version in self._watched.items():
                self._client._purge(name)
                if self._client._versions[name] != version:
                    raise WatchError("Watched variable changed.")
            return [self._client._dispatch(name, *args, **kwargs) for name, args, kwargs in self._stack]
        finally:
            await self.reset()


class FakeRedis:
    """In-memory stand-in for the redis.asyncio commands the engines use.

    Every command yields to the event loop once, so concurrent evaluations
    interleave. ``before_exec`` callbacks run inside a watched EXEC, one per
    EXEC, to simulate another writer touching the key.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._strings: dict[str, str] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._hashes: dict[str, dict[str, str]] = {}
        self._expires_at: dict[str, int] = {}
        self._versions: dict[str, int] = defaultdict(int)
        self.fail_on: set[str] = set()
        self.before_exec: list[Callable[[FakeRedis], None]] = []
        self.calls: list[str] = []

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)

    def stored_keys(self) -> list[str]:
        for key in list(self._expires_at):
            self._purge(key)
        return sorted({*self._strings, *self._zsets, *self._hashes})

    async def _run(self, name: str, *args, **kwargs):
        await asyncio.sleep(0)
        return self._dispatch(name, *args, **kwargs)

    def _dispatch(self, name: str, *args, **kwargs):
        self.calls.append(name)
        if name in self.fail_on:
            raise RedisConnectionError(f"connection lost during {name}")
        return getattr(self, f"_{name}")(*args, **kwargs)

    def _exists(self, key: str) -> bool:
        return key in self._strings or key in self._zsets or key in self._hashes

    def _delete(self, key: str) -> None:
        self._strings.pop(key, None)
        self._zsets.pop(key, None)
        self._hashes.pop(key, None)
        self._expires_at.pop(key, None)
        self._versions[key] += 1

    def _purge(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._delete(key)

    async def incr(self, name: str, amount: int = 1) -> int:
        return await self._run("incr", name, amount)

    async def pexpire(self, name: str, time: int) -> bool:
        return await self._run("pexpire", name, time)

    async def pttl(self, name: str) -> int:
        return await self._run("pttl", name)

    async def zremrangebyscore(self, name: str, min: float | str, max: float | str) -> int:
        return await self._run("zremrangebyscore", name, min, max)

    async def zcard(self, name: str) -> int:
        return await self._run("zcard", name)

    async def zadd(self, name: str, mapping: dict[str, float]) -> int:
        return await self._run("zadd", name, mapping)

    async def zrange(self, name: str, start: int, end: int, withscores: bool = False) -> list[Any]:
        return await self._run("zrange", name, start, end, withscores=withscores)

    async def hmget(self, name: str, keys: list[str], *args: str) -> list[str | None]:
        return await self._run("hmget", name, keys, *args)

    async def hset(self, name: str, mapping: dict[str, Any] | None = None) -> int:
        return await self._run("hset", name, mapping=mapping)

    def _incr(self, name: str, amount: int = 1) -> int:
        self._purge(name)
        value = int(self._strings.get(name, "0")) + amount
        self._strings[name] = str(value)
        self._versions[name] += 1
        return value

    def _pexpire(self, name: str, time: int) -> bool:
        self._purge(name)
        if not self._exists(name):
            return False
        self._expires_at[name] = self._clock() + time
        self._versions[name] += 1
        return True

    def _pttl(self, name: str) -> int:
        self._purge(name)
        if not self._exists(name):
            return -2
        if name not in self._expires_at:
            return -1
        return self._expires_at[name] - self._clock()

    def _zremrangebyscore(self, name: str, min: float | str, max: float | str) -> int:
        self._purge(name)
        members = self._zsets.get(name, {})
        low, high = float(min), float(max)
        targets = [member for member, score in members.items() if low <= score <= high]
        for member in targets:
            members.pop(member)
        if targets:
            self._versions[name] += 1
        if name in self._zsets and not members:
            self._delete(name)
        return len(targets)

    def _zcard(self, name: str) -> int:
        self._purge(name)
        return len(self._zsets.get(name, {}))

    def _zadd(self, name: str, mapping: dict[str, float]) -> int:
        self._purge(name)
        members = self._zsets.setdefault(name, {})
        added = len([member for member in mapping if member not in members])
        members.update({member: float(score) for member, score in mapping.items()})
        self._versions[name] += 1
        return added

    def _zrange(self, name: str, start: int, end: int, withscores: bool = False) -> list[Any]:
        self._purge(name)
        ordered = sorted(self._zsets.get(name, {}).items(), key=lambda item: (item[1], item[0]))
        stop = len(ordered) if end == -1 else end + 1
        window = ordered[start:stop]
        if withscores:
            return window
        return [member for member, _ in window]

    def _hmget(self, name: str, keys: list[str] | str, *args: str) -> list[str | None]:
        self._purge(name)
        fields = [keys] if isinstance(keys, str) else list(keys)
        fields.extend(args)
        values = self._hashes.get(name, {})
        return [values.get(field) for field in fields]

    def _hset(self, name: str, mapping: dict[str, Any] | None = None) -> int:
        self._purge(name)
        values = self._hashes.setdefault(name, {})
        added = len([field for field in (mapping or {}) if field not in values])
        values.update({field: str(value) for field, value in (mapping or {}).items()})
        self._versions[name] += 1
        return added


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def rate_limiter(fake_redis: FakeRedis, clock: FakeClock) -> RateLimiter:
    return RateLimiter(fake_redis, clock=clock)
