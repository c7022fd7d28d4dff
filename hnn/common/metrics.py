"""Metrics collection for the inference message service.

Provides a thin convenience wrapper around ``prometheus_client`` so the
service can consistently record HTTP, inference, model lifecycle, and
persistence metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per service (can be injected for tests)
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name used for scoping
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)

    Exposes typed helpers for common events to keep label sets consistent.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.inference_requests = Counter(
            'hnn_inference_requests_total',
            'Total inference calls issued to the engine',
            ['model_name', 'model_version'],
            registry=self.registry
        )

        self.inference_duration = Histogram(
            'hnn_inference_duration_seconds',
            'Engine inference call duration',
            ['model_name', 'model_version'],
            registry=self.registry
        )

        self.lifecycle_operations = Counter(
            'hnn_model_lifecycle_operations_total',
            'Model readiness, load, and unload calls by outcome',
            ['operation', 'outcome'],
            registry=self.registry
        )

        self.orchestration_failures = Counter(
            'hnn_orchestration_failures_total',
            'Failed message processing requests by failing step',
            ['step', 'error'],
            registry=self.registry
        )

        self.messages_persisted = Counter(
            'hnn_messages_persisted_total',
            'Messages durably stored after inference',
            ['model_name'],
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_inference(
        self,
        model_name: str,
        model_version: str,
        duration: float
    ) -> None:
        """Record an engine inference call."""
        self.inference_requests.labels(model_name=model_name, model_version=model_version).inc()
        self.inference_duration.labels(model_name=model_name, model_version=model_version).observe(duration)

    def record_lifecycle(self, operation: str, outcome: str) -> None:
        """Record a lifecycle call (``is_ready``/``load``/``unload``)."""
        self.lifecycle_operations.labels(operation=operation, outcome=outcome).inc()

    def record_failure(self, step: str, error: str) -> None:
        """Record an orchestration failure at ``step``."""
        self.orchestration_failures.labels(step=step, error=error).inc()

    def record_message_persisted(self, model_name: str) -> None:
        self.messages_persisted.labels(model_name=model_name).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
        logger.debug("Created metrics collector", service_name=service_name)
    return _metrics_collector
