"""Tests for the Triton gRPC transport with a mocked client."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from tritonclient.grpc import InferenceServerException

from hnn.inference import codec
from hnn.inference.transport import TensorSpec, TransportError, TransportTimeoutError
from hnn.inference.triton import TritonTransport


def make_client():
    client = MagicMock()
    for method in (
        "is_model_ready",
        "load_model",
        "unload_model",
        "infer",
        "is_server_live",
        "is_server_ready",
        "close",
    ):
        setattr(client, method, AsyncMock())
    return client


def infer_result(outputs):
    response = SimpleNamespace(
        outputs=[SimpleNamespace(name=name) for name in outputs],
        raw_output_contents=list(outputs.values()),
    )
    result = MagicMock()
    result.get_response.return_value = response
    return result


@pytest.mark.asyncio
async def test_is_model_ready_passes_version_and_timeout():
    client = make_client()
    client.is_model_ready.return_value = True
    transport = TritonTransport("triton:8001", client=client)

    assert await transport.is_model_ready("simple", "1", timeout=2.0) is True
    client.is_model_ready.assert_awaited_once_with(
        model_name="simple", model_version="1", client_timeout=2.0
    )


@pytest.mark.asyncio
async def test_infer_sends_raw_inputs_and_returns_raw_outputs():
    client = make_client()
    out0 = codec.encode_vector([3, 5])
    out1 = codec.encode_vector([-1, -1])
    client.infer.return_value = infer_result({"OUTPUT0": out0, "OUTPUT1": out1})
    transport = TritonTransport("triton:8001", client=client)

    raw0, raw1 = codec.encode([[1, 2], [2, 3]])
    inputs = [
        TensorSpec("INPUT0", "INT32", (1, 2), raw0),
        TensorSpec("INPUT1", "INT32", (1, 2), raw1),
    ]
    outputs = await transport.infer(
        "simple", "1", inputs, ["OUTPUT0", "OUTPUT1"], timeout=5.0, request_id="req-1"
    )

    assert outputs == {"OUTPUT0": out0, "OUTPUT1": out1}

    kwargs = client.infer.await_args.kwargs
    assert kwargs["model_name"] == "simple"
    assert kwargs["model_version"] == "1"
    assert kwargs["request_id"] == "req-1"
    assert kwargs["client_timeout"] == 5.0
    sent = kwargs["inputs"]
    assert [infer_input.name() for infer_input in sent] == ["INPUT0", "INPUT1"]
    assert [infer_input.datatype() for infer_input in sent] == ["INT32", "INT32"]
    assert [list(infer_input.shape()) for infer_input in sent] == [[1, 2], [1, 2]]
    assert [output.name() for output in kwargs["outputs"]] == ["OUTPUT0", "OUTPUT1"]


@pytest.mark.asyncio
async def test_server_error_becomes_transport_error():
    client = make_client()
    client.load_model.side_effect = InferenceServerException(
        "failed to load 'missing'", status="StatusCode.INTERNAL"
    )
    transport = TritonTransport("triton:8001", client=client)

    with pytest.raises(TransportError) as exc_info:
        await transport.load_model("missing", timeout=1.0)

    assert not isinstance(exc_info.value, TransportTimeoutError)
    assert "failed to load" in str(exc_info.value)


@pytest.mark.asyncio
async def test_deadline_exceeded_becomes_timeout():
    client = make_client()
    client.infer.side_effect = InferenceServerException(
        "Deadline Exceeded", status="StatusCode.DEADLINE_EXCEEDED"
    )
    transport = TritonTransport("triton:8001", client=client)
    raw = codec.encode_vector([0])

    with pytest.raises(TransportTimeoutError):
        await transport.infer(
            "simple", "1", [TensorSpec("INPUT0", "INT32", (1, 1), raw)], ["OUTPUT0"], timeout=1.0
        )


@pytest.mark.asyncio
async def test_local_timeout_bounds_hanging_call():
    client = make_client()

    async def hang(**kwargs):
        await asyncio.sleep(1.0)

    client.unload_model.side_effect = hang
    transport = TritonTransport("triton:8001", client=client)

    with pytest.raises(TransportTimeoutError):
        await transport.unload_model("simple", timeout=0.05)


@pytest.mark.asyncio
async def test_health_probes_and_close():
    client = make_client()
    client.is_server_live.return_value = True
    client.is_server_ready.return_value = False
    transport = TritonTransport("triton:8001", client=client)

    assert await transport.is_server_live(timeout=1.0) is True
    assert await transport.is_server_ready(timeout=1.0) is False
    await transport.close()
    client.close.assert_awaited_once()

