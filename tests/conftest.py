"""Shared fixtures: an engine double, a seeded store, and a request context."""

import pytest
from prometheus_client import CollectorRegistry

from hnn.common.context import RequestContext
from hnn.common.metrics import MetricsCollector
from hnn.storage.memory import InMemoryStore

from tests.fakes import FakeTransport


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store():
    """In-memory store with model ``simple`` (id 1) at version 1 (id 1)."""
    store = InMemoryStore()
    model_id = store.add_model("simple")
    store.add_version(model_id, 1)
    return store


@pytest.fixture
def metrics():
    return MetricsCollector("test-service", registry=CollectorRegistry())


@pytest.fixture
def ctx():
    return RequestContext.new(request_id="req-test", user_id=42)
