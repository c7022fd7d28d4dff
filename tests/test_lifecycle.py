"""Tests for model lifecycle management."""

import asyncio
import time

import pytest

from hnn.common.context import RequestContext
from hnn.inference.errors import InferenceTimeoutError, LifecycleError
from hnn.inference.lifecycle import ModelLifecycleManager
from hnn.inference.transport import TransportError, TransportTimeoutError

from tests.fakes import FakeTransport


@pytest.mark.asyncio
async def test_ready_model_is_not_loaded(ctx):
    transport = FakeTransport(ready=["simple"])
    manager = ModelLifecycleManager(transport)

    loaded = await manager.ensure_ready(ctx, "simple", 1)

    assert loaded is False
    assert transport.called("is_model_ready") == [("is_model_ready", "simple", "1")]
    assert transport.called("load_model") == []


@pytest.mark.asyncio
async def test_unready_model_is_loaded_exactly_once(ctx, transport, metrics):
    manager = ModelLifecycleManager(transport, metrics=metrics)

    loaded = await manager.ensure_ready(ctx, "simple", 3)

    assert loaded is True
    assert transport.called("load_model") == [("load_model", "simple")]
    # Readiness is not polled again after the load.
    assert len(transport.called("is_model_ready")) == 1
    assert metrics.registry.get_sample_value(
        "hnn_model_lifecycle_operations_total",
        {"operation": "load_model", "outcome": "ok"},
    ) == 1.0


@pytest.mark.asyncio
async def test_readiness_is_asked_every_time(ctx, transport):
    manager = ModelLifecycleManager(transport)

    await manager.ensure_ready(ctx, "simple", 1)
    await manager.ensure_ready(ctx, "simple", 1)

    assert len(transport.called("is_model_ready")) == 2
    assert len(transport.called("load_model")) == 1


@pytest.mark.asyncio
async def test_load_failure_is_lifecycle_error(ctx, transport, metrics):
    transport.failures["load_model"] = TransportError("load_model failed: no such model")
    manager = ModelLifecycleManager(transport, metrics=metrics)

    with pytest.raises(LifecycleError) as exc_info:
        await manager.ensure_ready(ctx, "missing", 1)

    assert exc_info.value.step == "ensure_ready"
    assert "load_model" in str(exc_info.value)
    assert len(transport.called("load_model")) == 1
    assert metrics.registry.get_sample_value(
        "hnn_model_lifecycle_operations_total",
        {"operation": "load_model", "outcome": "error"},
    ) == 1.0


@pytest.mark.asyncio
async def test_readiness_failure_is_lifecycle_error(ctx, transport):
    transport.failures["is_model_ready"] = TransportError("is_model_ready failed: unavailable")
    manager = ModelLifecycleManager(transport)

    with pytest.raises(LifecycleError):
        await manager.ensure_ready(ctx, "simple", 1)
    assert transport.called("load_model") == []


@pytest.mark.asyncio
async def test_transport_timeout_is_timeout_error(ctx, transport):
    transport.failures["is_model_ready"] = TransportTimeoutError("is_model_ready exceeded 10s")
    manager = ModelLifecycleManager(transport)

    with pytest.raises(InferenceTimeoutError):
        await manager.ensure_ready(ctx, "simple", 1)


@pytest.mark.asyncio
async def test_slow_call_is_cut_off_by_budget(ctx, transport):
    transport.delay = 0.5
    manager = ModelLifecycleManager(transport, call_timeout=0.05)

    with pytest.raises(InferenceTimeoutError) as exc_info:
        await manager.ensure_ready(ctx, "simple", 1)
    assert exc_info.value.step == "ensure_ready"


@pytest.mark.asyncio
async def test_expired_deadline_makes_no_call(transport):
    ctx = RequestContext(request_id="late", deadline=time.monotonic() - 1.0)
    manager = ModelLifecycleManager(transport)

    with pytest.raises(InferenceTimeoutError):
        await manager.ensure_ready(ctx, "simple", 1)
    assert transport.calls == []


@pytest.mark.asyncio
async def test_release_unloads_ready_model(ctx):
    transport = FakeTransport(ready=["simple"])
    manager = ModelLifecycleManager(transport)

    released = await manager.release(ctx, "simple")

    assert released is True
    # Any version counts when releasing.
    assert transport.called("is_model_ready") == [("is_model_ready", "simple", "")]
    assert transport.called("unload_model") == [("unload_model", "simple")]


@pytest.mark.asyncio
async def test_release_skips_unloaded_model(ctx, transport):
    manager = ModelLifecycleManager(transport)

    assert await manager.release(ctx, "simple") is False
    assert transport.called("unload_model") == []


@pytest.mark.asyncio
async def test_unload_failure_is_lifecycle_error(ctx):
    transport = FakeTransport(ready=["simple"])
    transport.failures["unload_model"] = TransportError("unload_model failed: busy")
    manager = ModelLifecycleManager(transport)

    with pytest.raises(LifecycleError) as exc_info:
        await manager.release(ctx, "simple")
    assert exc_info.value.step == "release"


@pytest.mark.asyncio
async def test_concurrent_callers_both_load_unready_model(ctx, transport):
    # Both readiness checks finish before either load is issued.
    transport.delay = 0.05
    manager = ModelLifecycleManager(transport)

    results = await asyncio.gather(
        manager.ensure_ready(ctx, "simple", 1),
        manager.ensure_ready(ctx, "simple", 1),
    )

    assert results == [True, True]
    assert [call[0] for call in transport.calls] == [
        "is_model_ready", "is_model_ready", "load_model", "load_model",
    ]
    assert "simple" in transport.ready
