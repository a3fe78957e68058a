"""
Synapse Router - Prometheus Metrics

Metrics exposed:
- synapse_requests_total: routed requests by model, provider, routing reason, status
- synapse_request_duration_seconds: end-to-end routing latency
- synapse_dispatch_attempts_total: upstream dispatch attempts by provider and outcome
- synapse_model_selections_total: model selection decisions by rule
- synapse_provider_healthy: 1 if the provider's last probe was healthy
- synapse_provider_probe_latency_ms: latency of the provider's last probe
- synapse_tokens_total: tokens used (input/output)
- synapse_cost_usd_total: estimated cost in USD

Usage:
    metrics = get_metrics()
    metrics.record_request(model="deepseek-chat", provider="deepseek",
                           routing_reason="primary", success=True,
                           duration_seconds=1.5)

    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """
    Central metrics collector.

    Each collector owns its registry so test instances never collide with
    the process-wide one.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            "synapse_requests_total",
            "Total number of routed requests",
            labelnames=["model", "provider", "routing_reason", "status"],
            registry=self.registry,
        )

        # LLM calls range from sub-second to a minute or more
        self.request_duration = Histogram(
            "synapse_request_duration_seconds",
            "End-to-end routing duration in seconds",
            labelnames=["model", "provider"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, float("inf")),
            registry=self.registry,
        )

        self.dispatch_attempts = Counter(
            "synapse_dispatch_attempts_total",
            "Upstream dispatch attempts",
            labelnames=["provider", "outcome"],  # outcome = success/failure
            registry=self.registry,
        )

        self.model_selections = Counter(
            "synapse_model_selections_total",
            "Model selection decisions",
            labelnames=["rule", "model"],
            registry=self.registry,
        )

        self.provider_healthy = Gauge(
            "synapse_provider_healthy",
            "Provider health from the last probe (1=healthy, 0=unhealthy)",
            labelnames=["provider"],
            registry=self.registry,
        )

        self.provider_probe_latency = Gauge(
            "synapse_provider_probe_latency_ms",
            "Latency of the provider's last health probe in milliseconds",
            labelnames=["provider"],
            registry=self.registry,
        )

        self.tokens_total = Counter(
            "synapse_tokens_total",
            "Total tokens used",
            labelnames=["provider", "model", "type"],  # type = input/output
            registry=self.registry,
        )

        self.cost_total = Counter(
            "synapse_cost_usd_total",
            "Total estimated cost in USD",
            labelnames=["provider", "model"],
            registry=self.registry,
        )

    def record_request(
        self,
        model: str,
        provider: str,
        routing_reason: str,
        success: bool,
        duration_seconds: float,
    ):
        """Record a completed (or failed) routed request."""
        self.requests_total.labels(
            model=model or "unknown",
            provider=provider or "unknown",
            routing_reason=routing_reason,
            status="success" if success else "failure",
        ).inc()

        self.request_duration.labels(
            model=model or "unknown",
            provider=provider or "unknown",
        ).observe(duration_seconds)

    def record_dispatch(self, provider: str, success: bool):
        self.dispatch_attempts.labels(
            provider=provider,
            outcome="success" if success else "failure",
        ).inc()

    def record_selection(self, rule: str, model: str):
        self.model_selections.labels(rule=rule, model=model or "unknown").inc()

    def set_provider_health(self, provider: str, healthy: bool, latency_ms: float):
        """Update health gauges after a probe or a staleness sweep."""
        self.provider_healthy.labels(provider=provider).set(1 if healthy else 0)
        self.provider_probe_latency.labels(provider=provider).set(latency_ms)

    def remove_provider(self, provider: str):
        """Drop gauges of a provider that left the configuration."""
        for gauge in (self.provider_healthy, self.provider_probe_latency):
            try:
                gauge.remove(provider)
            except KeyError:
                pass

    def record_usage(self, provider: str, model: str, input_tokens: int, output_tokens: int, cost_usd: float):
        """Record token usage and cost for a completed request."""
        self.tokens_total.labels(provider=provider, model=model, type="input").inc(input_tokens)
        self.tokens_total.labels(provider=provider, model=model, type="output").inc(output_tokens)
        if cost_usd > 0:
            self.cost_total.labels(provider=provider, model=model).inc(cost_usd)

    def render(self) -> bytes:
        return generate_latest(self.registry)


# Process-wide collector
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create the process-wide metrics collector."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def set_metrics(collector: MetricsCollector):
    """Replace the process-wide collector (for testing)."""
    global _metrics
    _metrics = collector


def metrics_endpoint(collector: Optional[MetricsCollector] = None) -> Response:
    """Render a collector (default: the process-wide one) in Prometheus text format."""
    return Response(
        content=(collector or get_metrics()).render(),
        media_type=CONTENT_TYPE_LATEST,
    )
