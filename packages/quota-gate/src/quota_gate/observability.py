from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Protocol

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

OUTCOME_ALLOWED = "allowed"
OUTCOME_DENIED = "denied"
OUTCOME_ERROR = "error"


@dataclass(frozen=True)
class AdmissionMetric:
    algorithm: str
    outcome: str
    duration_ms: float


class AdmissionMetricCollector(Protocol):
    def observe(self, metric: AdmissionMetric) -> None: ...


class InMemoryAdmissionMetricsCollector(AdmissionMetricCollector):
    def __init__(self) -> None:
        self._metrics: list[AdmissionMetric] = []

    def observe(self, metric: AdmissionMetric) -> None:
        self._metrics.append(metric)

    def snapshot(self) -> list[dict]:
        return [asdict(item) for item in self._metrics]


class PrometheusAdmissionMetricsCollector(AdmissionMetricCollector):
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()
        self._decision_counter = Counter(
            "quota_gate_decisions_total",
            "Rate limit evaluations by outcome",
            labelnames=("algorithm", "outcome"),
            registry=self._registry,
        )
        self._latency_histogram = Histogram(
            "quota_gate_evaluation_duration_ms",
            "Rate limit evaluation latency in milliseconds",
            labelnames=("algorithm",),
            buckets=(0.5, 1, 2.5, 5, 10, 25, 50, 100, 250),
            registry=self._registry,
        )

    def observe(self, metric: AdmissionMetric) -> None:
        self._decision_counter.labels(metric.algorithm, metric.outcome).inc()
        self._latency_histogram.labels(metric.algorithm).observe(metric.duration_ms)

    def render(self) -> str:
        return generate_latest(self._registry).decode("utf-8")


class CompositeAdmissionMetricsCollector(AdmissionMetricCollector):
    def __init__(self, collectors: list[AdmissionMetricCollector]) -> None:
        self._collectors = collectors

    def observe(self, metric: AdmissionMetric) -> None:
        for collector in self._collectors:
            collector.observe(metric)
