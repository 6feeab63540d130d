from __future__ import annotations

import logging
import time
from typing import Callable

from opentelemetry import trace

from quota_gate.algorithms import AdmissionEngine, build_engines
from quota_gate.errors import RateLimiterStoreError
from quota_gate.models import Algorithm, AdmissionRequest, EvaluationResult, LimiterConfig, RateLimiterConfig
from quota_gate.observability import (
    OUTCOME_ALLOWED,
    OUTCOME_DENIED,
    OUTCOME_ERROR,
    AdmissionMetric,
    AdmissionMetricCollector,
)
from quota_gate.sources import resolve_limit, resolve_storage_key
from quota_gate.store import RedisLikeLimiterClient

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class Limiter:
    """A configured limiter bound to its ``RateLimiter``.

    Creating it touches nothing; every ``evaluate()`` resolves the key and
    limit again and talks to Redis.
    """

    def __init__(self, owner: RateLimiter, config: LimiterConfig) -> None:
        self._owner = owner
        self._config = config

    @property
    def config(self) -> LimiterConfig:
        return self._config

    async def evaluate(self) -> EvaluationResult:
        return await self._owner.evaluate(self._config)


class RateLimiter:
    """Distributed rate limiter backed by a shared Redis client.

    The client belongs to the caller and is never closed or reconfigured
    here. Store failures surface as ``RateLimiterStoreError``; whether to
    fail open or closed is up to the caller.
    """

    def __init__(
        self,
        client: RedisLikeLimiterClient,
        config: RateLimiterConfig | None = None,
        *,
        clock: Callable[[], int] | None = None,
        metrics: AdmissionMetricCollector | None = None,
    ) -> None:
        self._client = client
        self._config = config or RateLimiterConfig()
        self._clock = clock or epoch_millis
        self._metrics = metrics
        self._engines: dict[Algorithm, AdmissionEngine] = build_engines(client, self._config)

    @property
    def prefix(self) -> str:
        return self._config.prefix

    def create(self, config: LimiterConfig) -> Limiter:
        return Limiter(self, config)

    async def evaluate(self, config: LimiterConfig) -> EvaluationResult:
        algorithm = config.algorithm
        engine: AdmissionEngine = self._engines[algorithm]
        started = time.perf_counter()
        with _tracer.start_as_current_span("quota_gate.evaluate") as span:
            span.set_attribute("rate_limit.algorithm", algorithm.value)
            storage_key = await resolve_storage_key(self._config.prefix, algorithm, config.key)
            limit = await resolve_limit(config.limit)
            request = AdmissionRequest(
                storage_key=storage_key,
                limit=limit,
                window_ms=config.window_ms,
                refill_rate_per_second=float(config.refill_rate_per_second or 0),
            )
            try:
                result = await engine.evaluate(request, self._clock())
            except RateLimiterStoreError:
                self._observe(algorithm.value, OUTCOME_ERROR, started)
                raise
            span.set_attribute("rate_limit.allowed", result.allowed)

        self._observe(algorithm.value, OUTCOME_ALLOWED if result.allowed else OUTCOME_DENIED, started)
        logger.debug(
            "rate_limit_evaluated",
            extra={
                "component": "quota_gate",
                "algorithm": algorithm.value,
                "storage_key": storage_key,
                "allowed": result.allowed,
                "remaining": result.remaining,
                "retry_after": result.retry_after,
            },
        )
        return result

    def _observe(self, algorithm: str, outcome: str, started: float) -> None:
        if self._metrics is None:
            return
        duration_ms = (time.perf_counter() - started) * 1000
        self._metrics.observe(AdmissionMetric(algorithm=algorithm, outcome=outcome, duration_ms=duration_ms))
