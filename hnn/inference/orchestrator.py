"""Inference orchestration: one request in, formatted results out.

``InferenceOrchestrator.process_message`` runs these steps strictly in order,
each starting only after the previous one completed:

1. validate both input vectors against the tensor length (no remote call yet)
2. resolve model id -> engine model name, version id -> version number
3. ensure the model is ready on the engine (check, then load if needed)
4. encode inputs to raw INT32 buffers; these exact bytes are what get stored
5. infer ``OUTPUT0``/``OUTPUT1`` from ``INPUT0``/``INPUT1``
6. decode the raw output buffers
7. format sum/difference strings
8. persist the message
9. return the strings

Persistence is last, so a request cancelled or failed before step 8 never
writes. A failure at step 8 is reported even though the engine already did
the work; nothing is rolled back or retried.

The orchestrator keeps no per-request state between calls; everything is
resolved afresh from the stores and the engine.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

import structlog

from hnn.common.context import RequestContext
from hnn.common.logging import log_performance
from hnn.common.metrics import MetricsCollector
from hnn.common.tracing import InferenceTracer, get_inference_tracer
from hnn.storage.base import Message, MessageStore, MetadataStore, StorageError, StorageNotFoundError

from . import codec
from .calls import DEFAULT_CALL_TIMEOUT, bounded_call
from .errors import (
    InferenceError,
    InvalidInputError,
    MalformedTensorError,
    MetadataError,
    MetadataNotFoundError,
    OrchestrationError,
    PersistenceError,
)
from .formatter import format_results
from .lifecycle import ModelLifecycleManager
from .transport import (
    DEFAULT_TENSOR_LENGTH,
    INPUT_NAMES,
    OUTPUT_NAMES,
    TENSOR_DATATYPE,
    InferenceTransport,
    TensorSpec,
    TransportError,
    tensor_shape,
)

logger = structlog.get_logger("inference.orchestrator")


@dataclass(frozen=True)
class MessageView:
    """A stored message with its raw inputs decoded for presentation."""

    id: Optional[int]
    user_id: int
    model_id: int
    version_id: int
    inputs: List[List[int]]
    results: List[str]
    created_at: datetime


class InferenceOrchestrator:
    """End-to-end message processing against the inference engine.

    Parameters
    - metadata: Resolves model/version ids and deletes model metadata
    - messages: Durable message history
    - transport: Engine client (shared, long-lived)
    - lifecycle: Lifecycle manager; built over ``transport`` when omitted
    - tensor_length: ``N`` in the ``[1, N]`` INT32 tensor contract
    - call_timeout: Budget in seconds for each engine call
    - metrics / tracer: Optional observability hooks
    """

    def __init__(
        self,
        metadata: MetadataStore,
        messages: MessageStore,
        transport: InferenceTransport,
        lifecycle: Optional[ModelLifecycleManager] = None,
        tensor_length: int = DEFAULT_TENSOR_LENGTH,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        metrics: Optional[MetricsCollector] = None,
        tracer: Optional[InferenceTracer] = None,
    ):
        self.metadata = metadata
        self.messages = messages
        self.transport = transport
        self.lifecycle = lifecycle or ModelLifecycleManager(
            transport, call_timeout=call_timeout, metrics=metrics
        )
        self.tensor_length = tensor_length
        self.call_timeout = call_timeout
        self.metrics = metrics
        self.tracer = tracer or get_inference_tracer("hnn-inference")

    async def process_message(
        self,
        ctx: RequestContext,
        user_id: int,
        model_id: int,
        version_id: int,
        input0: Sequence[int],
        input1: Sequence[int],
    ) -> List[str]:
        """Run one inference request and persist it.

        Returns ``2 * N`` strings, alternating sum and difference per index.

        Raises
        - InvalidInputError: an input vector is not exactly ``N`` long
        - MetadataNotFoundError / MetadataError: ids could not be resolved
        - LifecycleError: readiness check or load failed
        - InferenceError / MalformedTensorError: infer failed or returned
          unusable tensors
        - InferenceTimeoutError: an engine call ran past its deadline
        - PersistenceError: the message could not be stored
        """
        log = ctx.bind(logger).bind(model_id=model_id, version_id=version_id)
        started = time.perf_counter()
        try:
            results = await self._process(ctx, log, user_id, model_id, version_id, input0, input1)
        except OrchestrationError as e:
            if self.metrics is not None:
                self.metrics.record_failure(e.step, e.code)
            log.warning("Message processing failed", step=e.step, error=str(e), error_code=e.code)
            raise

        log_performance(log, "process_message", (time.perf_counter() - started) * 1000.0)
        return results

    async def _process(
        self,
        ctx: RequestContext,
        log,
        user_id: int,
        model_id: int,
        version_id: int,
        input0: Sequence[int],
        input1: Sequence[int],
    ) -> List[str]:
        self._validate_inputs(input0, input1)

        with self.tracer.trace_step("resolve", ctx, model_id=model_id, version_id=version_id):
            model_name = await self._resolve_model_name(model_id, step="resolve_model")
            version_number = await self._resolve_version_number(version_id)
        log = log.bind(model_name=model_name, model_version=version_number)

        with self.tracer.trace_step("ensure_ready", ctx, model_name=model_name):
            await self.lifecycle.ensure_ready(ctx, model_name, version_number)

        raw_inputs = codec.encode([input0, input1])

        with self.tracer.trace_step("infer", ctx, model_name=model_name, model_version=version_number):
            raw_outputs = await self._infer(ctx, model_name, version_number, raw_inputs)

        # Values as the engine received them (out-of-range inputs wrapped).
        sent0, sent1 = codec.decode(raw_inputs, self.tensor_length)
        output0, output1 = self._decode_outputs(raw_outputs)
        results = format_results(sent0, sent1, output0, output1)

        message = Message(
            user_id=user_id,
            model_id=model_id,
            version_id=version_id,
            input0=raw_inputs[0],
            input1=raw_inputs[1],
            results=results,
        )
        with self.tracer.trace_step("persist", ctx, model_name=model_name):
            try:
                stored = await self.messages.save_message(message)
            except StorageError as e:
                log.error("Inference completed but message was not persisted", error=str(e))
                raise PersistenceError("persist", str(e)) from e

        if self.metrics is not None:
            self.metrics.record_message_persisted(model_name)
        log.info("Message processed", message_id=stored.id, result_count=len(results))
        return results

    def _validate_inputs(self, input0: Sequence[int], input1: Sequence[int]) -> None:
        # Never truncate or pad: the engine declares a fixed shape.
        for name, vector in zip(INPUT_NAMES, (input0, input1)):
            if len(vector) != self.tensor_length:
                raise InvalidInputError(
                    "validate_input",
                    f"{name} has {len(vector)} values, expected {self.tensor_length}",
                )

    async def _resolve_model_name(self, model_id: int, step: str) -> str:
        try:
            return await self.metadata.resolve_model_name(model_id)
        except StorageNotFoundError as e:
            raise MetadataNotFoundError(step, str(e)) from e
        except StorageError as e:
            raise MetadataError(step, str(e)) from e

    async def _resolve_version_number(self, version_id: int) -> int:
        try:
            return await self.metadata.resolve_version_number(version_id)
        except StorageNotFoundError as e:
            raise MetadataNotFoundError("resolve_version", str(e)) from e
        except StorageError as e:
            raise MetadataError("resolve_version", str(e)) from e

    async def _infer(
        self,
        ctx: RequestContext,
        model_name: str,
        version_number: int,
        raw_inputs: List[bytes],
    ) -> dict:
        shape = tuple(tensor_shape(self.tensor_length))
        inputs = [
            TensorSpec(name=name, datatype=TENSOR_DATATYPE, shape=shape, raw=raw)
            for name, raw in zip(INPUT_NAMES, raw_inputs)
        ]
        version = str(version_number)

        started = time.perf_counter()
        try:
            raw_outputs = await bounded_call(
                ctx,
                "infer",
                lambda timeout: self.transport.infer(
                    model_name,
                    version,
                    inputs,
                    list(OUTPUT_NAMES),
                    timeout=timeout,
                    request_id=ctx.request_id,
                ),
                self.call_timeout,
            )
        except TransportError as e:
            raise InferenceError("infer", str(e)) from e

        if self.metrics is not None:
            self.metrics.record_inference(model_name, version, time.perf_counter() - started)
        return raw_outputs

    def _decode_outputs(self, raw_outputs: dict) -> List[List[int]]:
        missing = [name for name in OUTPUT_NAMES if name not in raw_outputs]
        if missing:
            raise MalformedTensorError("decode", f"response is missing {', '.join(missing)}")
        return codec.decode([raw_outputs[name] for name in OUTPUT_NAMES], self.tensor_length)

    async def get_messages(self, ctx: RequestContext, user_id: int, model_id: int) -> List[MessageView]:
        """Stored messages for a user and model, oldest first, inputs decoded.

        Pure read path: the engine is not contacted.

        Raises
        - PersistenceError: the store could not be read
        - MalformedTensorError: a stored input buffer is not ``N`` INT32 values
        """
        log = ctx.bind(logger).bind(model_id=model_id)
        try:
            stored = await self.messages.query_messages(user_id, model_id)
        except StorageError as e:
            log.error("Failed to read messages", error=str(e))
            raise PersistenceError("query_messages", str(e)) from e

        views = []
        for message in stored:
            try:
                inputs = codec.decode([message.input0, message.input1], self.tensor_length)
            except MalformedTensorError:
                log.error("Stored message has malformed inputs", message_id=message.id)
                raise
            views.append(
                MessageView(
                    id=message.id,
                    user_id=message.user_id,
                    model_id=message.model_id,
                    version_id=message.version_id,
                    inputs=inputs,
                    results=list(message.results),
                    created_at=message.created_at,
                )
            )
        log.debug("Messages loaded", count=len(views))
        return views

    async def delete_model(self, ctx: RequestContext, model_id: int) -> bool:
        """Unload a model from the engine (if loaded), then delete its metadata.

        The unload happens before the metadata is removed, so a failed unload
        leaves the model resolvable for another attempt.
        """
        log = ctx.bind(logger).bind(model_id=model_id)
        model_name = await self._resolve_model_name(model_id, step="delete_model")

        await self.lifecycle.release(ctx, model_name)

        try:
            deleted = await self.metadata.delete_model(model_id)
        except StorageError as e:
            raise PersistenceError("delete_model", str(e)) from e

        log.info("Model deleted", model_name=model_name, deleted=deleted)
        return deleted
