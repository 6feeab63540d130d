from __future__ import annotations

from typing import Any

from quota_gate import RateLimiter, RateLimiterConfigError
from quota_gate.observability import AdmissionMetricCollector

from devkit.config import LimiterSettings
from devkit.observability import configure_otel


def create_redis_client(url: str | None):
    if not url:
        return None
    import redis.asyncio as redis

    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        health_check_interval=30,
    )


def create_rate_limiter(
    settings: LimiterSettings,
    client: Any | None = None,
    metrics: AdmissionMetricCollector | None = None,
) -> RateLimiter:
    if client is None:
        client = create_redis_client(settings.REDIS_URL)
    if client is None:
        raise RateLimiterConfigError("REDIS_URL is required to build a rate limiter", {"service": settings.SERVICE_NAME})
    configure_otel(settings)
    return RateLimiter(client, settings.rate_limiter_config(), metrics=metrics)
