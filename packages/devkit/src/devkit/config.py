from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from quota_gate import DEFAULT_PREFIX, RateLimiterConfig
from quota_gate.models import DEFAULT_TOKEN_BUCKET_MAX_ATTEMPTS


class LimiterSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    SERVICE_NAME: str = "service"
    REDIS_URL: str | None = None
    OTEL_ENABLED: bool = False
    RATE_LIMIT_PREFIX: str = DEFAULT_PREFIX
    RATE_LIMIT_TOKEN_BUCKET_MAX_ATTEMPTS: int = DEFAULT_TOKEN_BUCKET_MAX_ATTEMPTS

    def rate_limiter_config(self) -> RateLimiterConfig:
        return RateLimiterConfig(
            prefix=self.RATE_LIMIT_PREFIX,
            token_bucket_max_attempts=self.RATE_LIMIT_TOKEN_BUCKET_MAX_ATTEMPTS,
        )


def load_settings(service_name: str) -> LimiterSettings:
    return LimiterSettings(SERVICE_NAME=service_name)
