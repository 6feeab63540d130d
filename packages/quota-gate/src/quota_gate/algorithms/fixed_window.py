from __future__ import annotations

import math

from quota_gate.algorithms.base import AdmissionEngine
from quota_gate.models import AdmissionRequest, EvaluationResult
from quota_gate.store import translate_store_errors

PTTL_NO_EXPIRY = -1


class FixedWindowEngine(AdmissionEngine):
    """Counter per window, reset by Redis key expiry.

    Two adjacent windows can each admit ``limit`` requests, so up to
    ``2 * limit`` requests may pass within less than one window around the
    boundary.
    """

    async def evaluate(self, request: AdmissionRequest, now_ms: int) -> EvaluationResult:
        key = request.storage_key
        with translate_store_errors("fixed_window", key):
            count = await self._client.incr(key)
            if count == 1:
                await self._client.pexpire(key, request.window_ms)
            ttl_ms = await self._client.pttl(key)
            if ttl_ms == PTTL_NO_EXPIRY:
                # counter left without expiry by an interrupted first call
                await self._client.pexpire(key, request.window_ms)
                ttl_ms = request.window_ms

        allowed = count <= request.limit
        return EvaluationResult(
            limit=request.limit,
            allowed=allowed,
            remaining=max(0, request.limit - count),
            retry_after=0 if allowed else math.ceil(max(0, ttl_ms) / 1000),
        )
