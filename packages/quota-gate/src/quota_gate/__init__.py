"""Distributed rate limiting on Redis: fixed window, sliding window log and token bucket."""

from quota_gate.errors import (
    RateLimiterConfigError,
    RateLimiterContentionError,
    RateLimiterError,
    RateLimiterStoreError,
)
from quota_gate.limiter import Limiter, RateLimiter
from quota_gate.models import (
    DEFAULT_PREFIX,
    Algorithm,
    EvaluationResult,
    KeySource,
    LimitSource,
    LimiterConfig,
    RateLimiterConfig,
)
from quota_gate.observability import (
    AdmissionMetric,
    CompositeAdmissionMetricsCollector,
    InMemoryAdmissionMetricsCollector,
    PrometheusAdmissionMetricsCollector,
)
from quota_gate.sources import storage_key

__all__ = [
    "DEFAULT_PREFIX",
    "AdmissionMetric",
    "Algorithm",
    "CompositeAdmissionMetricsCollector",
    "EvaluationResult",
    "InMemoryAdmissionMetricsCollector",
    "KeySource",
    "LimitSource",
    "Limiter",
    "LimiterConfig",
    "PrometheusAdmissionMetricsCollector",
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimiterConfigError",
    "RateLimiterContentionError",
    "RateLimiterError",
    "RateLimiterStoreError",
    "storage_key",
]
