"""
Shared metrics configuration for the storage access layer.
"""

from prometheus_client import Counter, Histogram, Info, start_http_server, CollectorRegistry
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["retries_total"] = Counter(
            "retries_total",
            "Retry decisions taken for transport failures",
            ["operation", "outcome"],
            registry=self.registry
        )

        if self.service_name == "credentials":
            self._setup_credentials_metrics()

    def _setup_credentials_metrics(self):
        """Set up credential broker metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            ["cache_type"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            ["cache_type"],
            registry=self.registry
        )

        self._metrics["admin_api_requests_total"] = Counter(
            "admin_api_requests_total",
            "Admin API requests by endpoint and outcome",
            ["endpoint", "outcome"],
            registry=self.registry
        )

        self._metrics["credential_resolutions_total"] = Counter(
            "credential_resolutions_total",
            "Bucket credential resolutions by outcome",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["credential_resolution_duration_seconds"] = Histogram(
            "credential_resolution_duration_seconds",
            "Time spent resolving bucket credentials on a cache miss",
            ["outcome"],
            registry=self.registry
        )

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        if self.registry is not None:
            start_http_server(port, registry=self.registry)
        else:
            start_http_server(port)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

