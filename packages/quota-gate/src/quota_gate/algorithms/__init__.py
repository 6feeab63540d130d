from __future__ import annotations

from quota_gate.algorithms.base import AdmissionEngine
from quota_gate.algorithms.fixed_window import FixedWindowEngine
from quota_gate.algorithms.sliding_window import SlidingWindowEngine
from quota_gate.algorithms.token_bucket import TokenBucketEngine, refill_bucket
from quota_gate.models import Algorithm, RateLimiterConfig
from quota_gate.store import RedisLikeLimiterClient


def build_engines(client: RedisLikeLimiterClient, config: RateLimiterConfig) -> dict[Algorithm, AdmissionEngine]:
    return {
        Algorithm.FIXED_WINDOW: FixedWindowEngine(client),
        Algorithm.SLIDING_WINDOW: SlidingWindowEngine(client),
        Algorithm.TOKEN_BUCKET: TokenBucketEngine(client, max_attempts=config.token_bucket_max_attempts),
    }


__all__ = [
    "AdmissionEngine",
    "FixedWindowEngine",
    "SlidingWindowEngine",
    "TokenBucketEngine",
    "build_engines",
    "refill_bucket",
]
