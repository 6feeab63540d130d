"""Runtime wiring for services that embed quota_gate."""

from devkit.config import LimiterSettings, load_settings
from devkit.observability import configure_otel
from devkit.redis import create_rate_limiter, create_redis_client

__all__ = [
    "LimiterSettings",
    "configure_otel",
    "create_rate_limiter",
    "create_redis_client",
    "load_settings",
]
