from __future__ import annotations

import math
from uuid import uuid4

from quota_gate.algorithms.base import AdmissionEngine
from quota_gate.models import AdmissionRequest, EvaluationResult
from quota_gate.store import translate_store_errors


class SlidingWindowEngine(AdmissionEngine):
    """Sorted-set log of admitted requests scored by epoch milliseconds.

    Pruning, counting and reading the oldest entry share one MULTI/EXEC; the
    insert is a second one. Concurrent evaluators may both see a free slot,
    so over-admission is bounded by the number of concurrent callers.
    """

    async def evaluate(self, request: AdmissionRequest, now_ms: int) -> EvaluationResult:
        key = request.storage_key
        limit = request.limit
        window_start = now_ms - request.window_ms

        with translate_store_errors("sliding_window", key):
            async with self._client.pipeline(transaction=True) as pipe:
                _, count, oldest = await (
                    pipe.zremrangebyscore(key, "-inf", window_start)
                    .zcard(key)
                    .zrange(key, 0, 0, withscores=True)
                    .execute()
                )

            if count < limit:
                member = f"{now_ms}-{uuid4().hex}"
                async with self._client.pipeline(transaction=True) as pipe:
                    await pipe.zadd(key, {member: now_ms}).pexpire(key, request.window_ms).execute()

        allowed = count < limit
        retry_after = 0
        if not allowed and oldest:
            _, oldest_score = oldest[0]
            retry_after = max(0, math.ceil((float(oldest_score) + request.window_ms - now_ms) / 1000))

        return EvaluationResult(
            limit=limit,
            allowed=allowed,
            remaining=max(0, limit - count),
            retry_after=retry_after,
        )
