"""Distributed tracing configuration for the inference message service.

Wraps OpenTelemetry setup with an OTLP gRPC exporter and optional
auto-instrumentation for FastAPI. Also provides a scoped context manager for
spans and an inference-specific tracer so span names and attributes stay
consistent across the orchestration steps.
"""

import os
from typing import Any, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode
import structlog

logger = structlog.get_logger("tracing")


def configure_tracing(
    service_name: str,
    otlp_endpoint: str = "localhost:4317",
    app: Any = None,
) -> Optional[trace.Tracer]:
    """Configure distributed tracing for a service.

    Parameters
    - service_name: Logical service identifier used in trace resources
    - otlp_endpoint: Collector endpoint (gRPC) for exporting spans
    - app: Optional FastAPI application to instrument

    Returns
    - A tracer instance for ad-hoc span creation, or ``None`` on failure
    """

    try:
        tracer_provider = TracerProvider(
            resource=Resource.create({
                "service.name": service_name,
                "service.version": "0.1.0",
                "deployment.environment": os.getenv("HNN_ENV", "local")
            })
        )

        exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(tracer_provider)

        tracer = trace.get_tracer(service_name)

        if app is not None:
            try:
                FastAPIInstrumentor.instrument_app(app)
                logger.info("FastAPI instrumentation enabled")
            except Exception as e:
                # Partial failure is acceptable; log but continue.
                logger.warning("Failed to enable FastAPI instrumentation", error=str(e))

        logger.info(
            "Distributed tracing configured",
            service_name=service_name,
            otlp_endpoint=otlp_endpoint
        )

        return tracer

    except Exception as e:
        logger.error("Failed to configure tracing", error=str(e))
        return None


class TracingContext:
    """Context manager for tracing operations.

    Starts a span on entry and ensures it ends, recording success or error.
    """

    def __init__(self, tracer: trace.Tracer, operation_name: str, **attributes):
        self.tracer = tracer
        self.operation_name = operation_name
        self.attributes = attributes
        self.span: Optional[trace.Span] = None

    def __enter__(self) -> trace.Span:
        self.span = self.tracer.start_span(self.operation_name)
        for key, value in self.attributes.items():
            self.span.set_attribute(key, str(value))
        return self.span

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.span is None:
            return False
        if exc_val is not None:
            self.span.record_exception(exc_val)
            # Orchestration errors name the failing step and a stable code.
            for attribute in ("step", "code"):
                value = getattr(exc_val, attribute, None)
                if isinstance(value, str):
                    self.span.set_attribute(f"error.{attribute}", value)
            self.span.set_status(Status(StatusCode.ERROR, f"{exc_type.__name__}: {exc_val}"))
        else:
            self.span.set_status(Status(StatusCode.OK))
        self.span.end()
        return False


class InferenceTracer:
    """Span helpers for the orchestration steps.

    Every span carries the request id so engine-side logs (which receive the
    same id) can be correlated with service traces.
    """

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.tracer = trace.get_tracer(service_name)

    def trace_step(self, step: str, ctx: Any, **attributes) -> TracingContext:
        """Trace one orchestration step (``resolve``, ``infer``, ``persist``...)."""
        return TracingContext(
            self.tracer,
            f"inference.{step}",
            request_id=ctx.request_id,
            **attributes
        )


def get_inference_tracer(service_name: str) -> InferenceTracer:
    """Get the inference tracer for a service."""
    return InferenceTracer(service_name)
