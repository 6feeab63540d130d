from __future__ import annotations

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider

from devkit.config import LimiterSettings

_configured = False


def configure_otel(settings: LimiterSettings) -> bool:
    """Install the process tracer provider so ``quota_gate.evaluate`` spans carry the service name.

    Returns True only for the call that installed it.
    """
    global _configured
    if _configured or not settings.OTEL_ENABLED:
        return False
    resource = Resource.create(
        {
            "service.name": settings.SERVICE_NAME,
            "service.namespace": "quota_gate",
            "rate_limit.prefix": settings.RATE_LIMIT_PREFIX,
        }
    )
    trace.set_tracer_provider(TracerProvider(resource=resource))
    _configured = True
    return True
