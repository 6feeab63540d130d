from __future__ import annotations

from abc import ABC, abstractmethod

from quota_gate.models import AdmissionRequest, EvaluationResult
from quota_gate.store import RedisLikeLimiterClient


class AdmissionEngine(ABC):
    def __init__(self, client: RedisLikeLimiterClient) -> None:
        self._client = client

    @abstractmethod
    async def evaluate(self, request: AdmissionRequest, now_ms: int) -> EvaluationResult:
        raise NotImplementedError
