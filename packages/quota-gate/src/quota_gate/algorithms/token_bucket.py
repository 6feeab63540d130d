from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from redis.exceptions import WatchError

from quota_gate.algorithms.base import AdmissionEngine
from quota_gate.errors import RateLimiterContentionError, RateLimiterStoreError
from quota_gate.models import DEFAULT_TOKEN_BUCKET_MAX_ATTEMPTS, AdmissionRequest, EvaluationResult
from quota_gate.store import RedisLikeLimiterClient, as_text, translate_store_errors

logger = logging.getLogger(__name__)

TOKENS_FIELD = "tokens"
LAST_REFILL_FIELD = "last_refill"


@dataclass(frozen=True)
class BucketState:
    tokens: float
    last_refill_ms: int


def refill_bucket(state: BucketState, capacity: int, refill_rate_per_second: float, now_ms: int) -> float:
    """Tokens available at ``now_ms``: whole tokens only, capped at capacity."""
    elapsed_seconds = max(0, now_ms - state.last_refill_ms) / 1000
    refill_amount = math.floor(elapsed_seconds * refill_rate_per_second)
    return min(capacity, state.tokens + refill_amount)


class TokenBucketEngine(AdmissionEngine):
    """Token bucket stored as a Redis hash ``{tokens, last_refill}``.

    The read-decide-write runs as an optimistic transaction: the hash is
    read under WATCH and written with MULTI/EXEC. If another evaluator wrote
    the key in between, EXEC aborts and the whole sequence is retried with
    fresh state, so a token is never handed out twice.
    """

    def __init__(
        self,
        client: RedisLikeLimiterClient,
        max_attempts: int = DEFAULT_TOKEN_BUCKET_MAX_ATTEMPTS,
    ) -> None:
        super().__init__(client)
        self._max_attempts = max_attempts

    async def evaluate(self, request: AdmissionRequest, now_ms: int) -> EvaluationResult:
        key = request.storage_key
        with translate_store_errors("token_bucket", key):
            async with self._client.pipeline(transaction=True) as pipe:
                for attempt in range(1, self._max_attempts + 1):
                    try:
                        await pipe.watch(key)
                        tokens_raw, last_refill_raw = await pipe.hmget(key, [TOKENS_FIELD, LAST_REFILL_FIELD])
                        state = self._load_state(key, tokens_raw, last_refill_raw, request.limit, now_ms)
                        # never move the refill timestamp behind a later writer
                        refill_at = max(state.last_refill_ms, now_ms)
                        tokens = refill_bucket(state, request.limit, request.refill_rate_per_second, refill_at)

                        allowed = tokens >= 1
                        if allowed:
                            tokens -= 1

                        pipe.multi()
                        pipe.hset(
                            key,
                            mapping={TOKENS_FIELD: f"{tokens:.2f}", LAST_REFILL_FIELD: str(refill_at)},
                        ).pexpire(key, request.window_ms)
                        await pipe.execute()
                    except WatchError:
                        logger.debug(
                            "token_bucket_cas_conflict",
                            extra={"component": "quota_gate", "storage_key": key, "attempt": attempt},
                        )
                        continue
                    return EvaluationResult(
                        limit=request.limit,
                        allowed=allowed,
                        remaining=math.floor(tokens),
                        retry_after=0 if allowed else self._retry_after(request),
                    )

        raise RateLimiterContentionError(
            "token bucket update lost every compare-and-swap attempt",
            {"storage_key": key, "attempts": self._max_attempts},
        )

    @staticmethod
    def _load_state(key: str, tokens_raw, last_refill_raw, capacity: int, now_ms: int) -> BucketState:
        tokens_text = as_text(tokens_raw)
        last_refill_text = as_text(last_refill_raw)
        if tokens_text is None or last_refill_text is None:
            return BucketState(tokens=float(capacity), last_refill_ms=now_ms)
        try:
            tokens = float(tokens_text)
            last_refill_ms = int(float(last_refill_text))
            if not math.isfinite(tokens):
                raise ValueError(f"non-finite token count {tokens_text!r}")
        except (ValueError, OverflowError) as exc:
            raise RateLimiterStoreError(
                "token bucket hash holds non-numeric state",
                {"storage_key": key, "tokens": tokens_text, "last_refill": last_refill_text},
            ) from exc
        return BucketState(tokens=tokens, last_refill_ms=last_refill_ms)

    @staticmethod
    def _retry_after(request: AdmissionRequest) -> int:
        if request.refill_rate_per_second > 0:
            return math.ceil(1 / request.refill_rate_per_second)
        # nothing refills; the bucket is recreated full once its key idles out
        return math.ceil(request.window_ms / 1000)
