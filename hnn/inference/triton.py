"""Triton implementation of the inference transport.

Talks to Triton Inference Server over gRPC using the asyncio flavour of
``tritonclient``. Raw input buffers are forwarded byte-for-byte and raw output
buffers are returned untouched; decoding is the codec's job.

Deadlines
- Every call sends ``client_timeout`` so the engine side can abandon work
- Every call is also bounded locally with ``asyncio.wait_for``
- ``DEADLINE_EXCEEDED`` and local timeouts surface as ``TransportTimeoutError``
"""

import asyncio
from typing import Any, Awaitable, Dict, Optional, Sequence

import numpy as np
import structlog
import tritonclient.grpc.aio as grpcclient_aio
from tritonclient.grpc import InferInput, InferRequestedOutput, InferenceServerException

from .transport import (
    InferenceTransport,
    TensorSpec,
    TransportError,
    TransportTimeoutError,
)

logger = structlog.get_logger("inference.triton")

_DEADLINE_EXCEEDED = "StatusCode.DEADLINE_EXCEEDED"


class TritonTransport(InferenceTransport):
    """Triton gRPC transport.

    Parameters
    - url: ``host:port`` of the Triton gRPC endpoint
    - verbose: Forwarded to the client for wire-level debugging
    - client: Pre-built ``InferenceServerClient`` (mainly for tests)
    """

    def __init__(
        self,
        url: str,
        verbose: bool = False,
        client: Optional[Any] = None,
    ):
        self.url = url
        if client is None:
            logger.debug("Creating Triton gRPC client", url=url)
            client = grpcclient_aio.InferenceServerClient(url=url, verbose=verbose)
        self.client = client

    async def _call(self, operation: str, call: Awaitable[Any], timeout: Optional[float]) -> Any:
        """Await one client call, translating client errors to transport errors."""
        try:
            if timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise TransportTimeoutError(f"{operation} exceeded {timeout}s") from e
        except InferenceServerException as e:
            if str(e.status()) == _DEADLINE_EXCEEDED:
                raise TransportTimeoutError(f"{operation} exceeded {timeout}s: {e.message()}") from e
            raise TransportError(f"{operation} failed: {e.message()}") from e

    async def is_model_ready(
        self,
        name: str,
        version: str = "",
        timeout: Optional[float] = None
    ) -> bool:
        ready = await self._call(
            "is_model_ready",
            self.client.is_model_ready(model_name=name, model_version=version, client_timeout=timeout),
            timeout,
        )
        return bool(ready)

    async def load_model(self, name: str, timeout: Optional[float] = None) -> None:
        await self._call(
            "load_model",
            self.client.load_model(model_name=name, client_timeout=timeout),
            timeout,
        )

    async def unload_model(self, name: str, timeout: Optional[float] = None) -> None:
        await self._call(
            "unload_model",
            self.client.unload_model(model_name=name, client_timeout=timeout),
            timeout,
        )

    async def infer(
        self,
        name: str,
        version: str,
        inputs: Sequence[TensorSpec],
        outputs: Sequence[str],
        timeout: Optional[float] = None,
        request_id: str = ""
    ) -> Dict[str, bytes]:
        infer_inputs = []
        for spec in inputs:
            infer_input = InferInput(spec.name, list(spec.shape), spec.datatype)
            # frombuffer/tobytes round-trips the exact bytes, whatever the host order.
            array = np.frombuffer(spec.raw, dtype=np.int32).reshape(spec.shape)
            infer_input.set_data_from_numpy(array)
            infer_inputs.append(infer_input)

        requested_outputs = [InferRequestedOutput(output_name) for output_name in outputs]

        result = await self._call(
            "infer",
            self.client.infer(
                model_name=name,
                inputs=infer_inputs,
                model_version=version,
                outputs=requested_outputs,
                request_id=request_id,
                client_timeout=timeout,
            ),
            timeout,
        )

        response = result.get_response()
        raw_outputs = response.raw_output_contents
        buffers = {}
        for index, output in enumerate(response.outputs):
            if index < len(raw_outputs):
                buffers[output.name] = bytes(raw_outputs[index])
        return buffers

    async def is_server_live(self, timeout: Optional[float] = None) -> bool:
        live = await self._call(
            "is_server_live",
            self.client.is_server_live(client_timeout=timeout),
            timeout,
        )
        return bool(live)

    async def is_server_ready(self, timeout: Optional[float] = None) -> bool:
        ready = await self._call(
            "is_server_ready",
            self.client.is_server_ready(client_timeout=timeout),
            timeout,
        )
        return bool(ready)

    async def close(self) -> None:
        await self.client.close()
        logger.debug("Closed Triton gRPC client", url=self.url)
