# File: src/kalon_explorer/monitoring/metrics.py

from typing import Optional
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        # Fetch metrics
        self.fetches = Counter(
            'explorer_fetches', 'Backend fetches by resource kind and outcome',
            ['kind', 'outcome'], registry=self.registry
        )
        self.fetch_latency = Histogram(
            'explorer_fetch_latency_seconds', 'Backend fetch latency',
            ['kind'], registry=self.registry
        )

        # Scheduler metrics
        self.skipped_ticks = Counter(
            'explorer_skipped_ticks', 'Poll ticks skipped because a fetch was in flight',
            ['kind'], registry=self.registry
        )
        self.stale_responses = Counter(
            'explorer_stale_responses', 'Responses discarded as superseded or unobserved',
            ['kind'], registry=self.registry
        )
        self.subscriptions = Gauge(
            'explorer_subscriptions', 'Active resource subscriptions', registry=self.registry
        )
        self.degraded_resources = Gauge(
            'explorer_degraded_resources', 'Resources serving stale data', registry=self.registry
        )

    def serve(self, port: int):
        """Expose the registry over HTTP."""
        start_http_server(port, registry=self.registry)

    def record_fetch(self, kind: str, outcome: str, duration: float):
        self.fetches.labels(kind=kind, outcome=outcome).inc()
        self.fetch_latency.labels(kind=kind).observe(duration)

    def record_skipped_tick(self, kind: str):
        self.skipped_ticks.labels(kind=kind).inc()

    def record_stale_response(self, kind: str):
        self.stale_responses.labels(kind=kind).inc()

    def update_resource_gauges(self, subscriptions: int, degraded: int):
        self.subscriptions.set(subscriptions)
        self.degraded_resources.set(degraded)

    def sample(self, name: str, **labels) -> float:
        value = self.registry.get_sample_value(name, labels or None)
        return value or 0.0
