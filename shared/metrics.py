"""
Prometheus metrics for the did:hpass resolver driver.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest


class MetricsCollector:
    """Metrics collector for one service instance.

    Each collector owns its registry so that several applications can be
    created in the same process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up service metrics."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self.set_info()

        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["resolutions_total"] = Counter(
            "did_resolutions_total",
            "DID resolutions by result code",
            ["service", "result"],
            registry=self.registry
        )

        self._metrics["resolution_duration"] = Histogram(
            "did_resolution_duration_seconds",
            "DID resolution duration",
            ["service"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry
        )

        self._metrics["upstream_attempts_total"] = Counter(
            "upstream_attempts_total",
            "Load-balanced upstream attempts by outcome",
            ["service", "outcome"],
            registry=self.registry
        )

        self._metrics["token_refreshes_total"] = Counter(
            "token_refreshes_total",
            "Bearer token logins by outcome",
            ["service", "outcome"],
            registry=self.registry
        )

    def set_info(self, version: str = "1.0.0", env: str = "local"):
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": version,
            "env": env
        })

    def record_http_request(self, method: str, endpoint: str, status_code: int):
        """Record an HTTP request served by the driver."""
        self._metrics["http_requests_total"].labels(
            service=self.service_name,
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

    def record_resolution(self, result: str, duration: float):
        """Record a finished resolution; ``result`` is ``ok`` or an error code."""
        with self._lock:
            self._metrics["resolutions_total"].labels(
                service=self.service_name,
                result=result
            ).inc()
            self._metrics["resolution_duration"].labels(
                service=self.service_name
            ).observe(duration)

    def record_upstream_attempt(self, outcome: str):
        self._metrics["upstream_attempts_total"].labels(
            service=self.service_name,
            outcome=outcome
        ).inc()

    def record_token_refresh(self, outcome: str):
        self._metrics["token_refreshes_total"].labels(
            service=self.service_name,
            outcome=outcome
        ).inc()

    def get_sample(self, name: str, labels: Dict[str, str]) -> Optional[float]:
        """Read a single sample value, mainly for tests."""
        return self.registry.get_sample_value(name, {"service": self.service_name, **labels})

    def render(self) -> bytes:
        """Render metrics in the Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Create a metrics collector for a service."""
    return MetricsCollector(service_name)
