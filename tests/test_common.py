"""Tests for common utilities."""

import time

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import CollectorRegistry

from hnn.common.config import BaseConfig, MessageServiceConfig, get_config
from hnn.common.context import RequestContext
from hnn.common.logging import configure_logging, summarize_buffers
from hnn.common.metrics import MetricsCollector
from hnn.common.tracing import TracingContext
from hnn.inference.errors import InferenceError


def test_config_loading():
    """Test configuration loading."""
    config = BaseConfig()
    assert config.hnn_env == "local"
    assert config.hnn_log_level == "INFO"
    assert config.hnn_triton_timeout_seconds == 10.0
    assert config.hnn_tensor_length == 16


def test_message_service_config():
    """Test message service configuration."""
    config = MessageServiceConfig()
    assert config.hnn_message_service_port == 9010
    assert isinstance(get_config("message"), MessageServiceConfig)


def test_config_reads_environment(monkeypatch):
    """Environment variables override defaults."""
    monkeypatch.setenv("HNN_TRITON_HOST", "triton.internal")
    monkeypatch.setenv("HNN_TRITON_PORT", "9001")
    config = BaseConfig()
    assert config.triton_url == "triton.internal:9001"


def test_config_rejects_non_positive_timeout(monkeypatch):
    monkeypatch.setenv("HNN_TRITON_TIMEOUT_SECONDS", "0")
    with pytest.raises(ValueError):
        BaseConfig()


def test_logging_configuration():
    """Test logging configuration."""
    # This should not raise an exception
    configure_logging("test-service", "INFO", "json")
    configure_logging("test-service", "debug", "console")


def test_logging_rejects_unknown_settings():
    with pytest.raises(ValueError):
        configure_logging("test-service", "LOUD", "json")
    with pytest.raises(ValueError):
        configure_logging("test-service", "INFO", "xml")


def test_raw_buffers_are_summarized():
    event = summarize_buffers(None, "info", {"event": "sent", "raw": b"\x00" * 64, "count": 3})
    assert event == {"event": "sent", "raw": "<64 bytes>", "count": 3}


def test_metrics_collector():
    """Test metrics collector."""
    collector = MetricsCollector("test-service", registry=CollectorRegistry())
    assert collector.service_name == "test-service"

    collector.record_http_request("GET", "/test", 200, 0.1)
    collector.record_inference("simple", "1", 0.05)
    collector.record_lifecycle("load_model", "ok")
    collector.record_failure("infer", "inference_error")
    collector.record_message_persisted("simple")

    metrics = collector.get_metrics()
    assert isinstance(metrics, str)
    assert "http_requests_total" in metrics
    assert "hnn_inference_requests_total" in metrics
    assert collector.registry.get_sample_value(
        "hnn_orchestration_failures_total",
        {"step": "infer", "error": "inference_error"},
    ) == 1.0


def test_request_context_without_deadline():
    ctx = RequestContext.new(request_id="req-1", user_id=7)
    assert ctx.request_id == "req-1"
    assert ctx.remaining() is None
    assert not ctx.expired()
    assert ctx.timeout_for(10.0) == 10.0


def test_request_context_deadline_caps_budget():
    ctx = RequestContext.new(timeout=0.5)
    assert ctx.request_id
    assert 0.0 < ctx.timeout_for(10.0) <= 0.5
    assert ctx.timeout_for(0.1) == 0.1


def test_request_context_expired():
    ctx = RequestContext(request_id="req-2", deadline=time.monotonic() - 1.0)
    assert ctx.expired()
    assert ctx.remaining() == 0.0
    assert ctx.timeout_for(10.0) == 0.0


def test_request_context_bind():
    logger = structlog.get_logger("test")
    bound = RequestContext.new(request_id="req-3", user_id=5).bind(logger)
    assert bound._context["request_id"] == "req-3"
    assert bound._context["user_id"] == 5


def test_tracing_context_records_failed_step():
    provider = TracerProvider()
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    tracer = provider.get_tracer("test")

    with pytest.raises(InferenceError):
        with TracingContext(tracer, "inference.infer", request_id="req-9"):
            raise InferenceError("infer", "engine unavailable")

    [span] = exporter.get_finished_spans()
    assert span.name == "inference.infer"
    assert span.attributes["request_id"] == "req-9"
    assert span.attributes["error.step"] == "infer"
    assert span.attributes["error.code"] == "inference_error"
    assert span.status.status_code == StatusCode.ERROR
