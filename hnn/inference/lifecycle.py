"""Model lifecycle on the inference engine.

Readiness is always asked of the engine and never cached locally: the engine
is the only source of truth while other service instances load and unload
the same models.

State per ``(name, version)`` as observed from here:
- unknown -> readiness query -> ready | not ready
- not ready -> one load call; a load that returns without error is enough to
  proceed
- ready -> nothing to do
"""

from typing import Awaitable, Callable, Optional

import structlog

from hnn.common.context import RequestContext
from hnn.common.metrics import MetricsCollector

from .calls import DEFAULT_CALL_TIMEOUT, bounded_call
from .errors import LifecycleError
from .transport import InferenceTransport, TransportError

logger = structlog.get_logger("inference.lifecycle")


class ModelLifecycleManager:
    """Check-and-load / check-and-unload for engine models.

    Parameters
    - transport: Engine client shared with the orchestrator
    - call_timeout: Budget in seconds for each readiness/load/unload call
    - metrics: Optional collector for lifecycle call outcomes
    """

    def __init__(
        self,
        transport: InferenceTransport,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.transport = transport
        self.call_timeout = call_timeout
        self.metrics = metrics

    async def _call(
        self,
        ctx: RequestContext,
        step: str,
        operation: str,
        call: Callable[[float], Awaitable],
    ):
        try:
            result = await bounded_call(ctx, step, call, self.call_timeout)
        except TransportError as e:
            self._record(operation, "error")
            raise LifecycleError(step, f"{operation} failed: {e}") from e
        except Exception:
            self._record(operation, "error")
            raise
        self._record(operation, "ok")
        return result

    def _record(self, operation: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_lifecycle(operation, outcome)

    async def is_ready(
        self,
        ctx: RequestContext,
        name: str,
        version: str = "",
        step: str = "is_ready",
    ) -> bool:
        """Ask the engine whether ``name``/``version`` can serve right now."""
        return await self._call(
            ctx,
            step,
            "is_model_ready",
            lambda timeout: self.transport.is_model_ready(name, version, timeout=timeout),
        )

    async def ensure_ready(self, ctx: RequestContext, name: str, version: int) -> bool:
        """Make sure the model is loaded before inference.

        Returns ``True`` when a load call was issued, ``False`` when the model
        was already ready.

        Raises
        - LifecycleError: readiness query or load failed (not retried)
        - InferenceTimeoutError: either call ran past its deadline
        """
        log = ctx.bind(logger).bind(model_name=name, model_version=version)

        if await self.is_ready(ctx, name, str(version), step="ensure_ready"):
            log.debug("Model already ready")
            return False

        # Check-then-act: another caller may load the same model concurrently.
        # The engine treats duplicate loads as idempotent; no lock is taken here.
        log.info("Model not ready, loading")
        await self._call(
            ctx,
            "ensure_ready",
            "load_model",
            lambda timeout: self.transport.load_model(name, timeout=timeout),
        )
        # No readiness poll after the load. An infer that still finds the
        # model unavailable surfaces as InferenceError.
        log.info("Model load requested")
        return True

    async def release(
        self,
        ctx: RequestContext,
        name: str,
        version: Optional[int] = None,
    ) -> bool:
        """Unload the model if the engine reports it ready.

        Returns ``True`` when an unload call was issued; a model that is not
        ready is left alone.
        """
        log = ctx.bind(logger).bind(model_name=name, model_version=version)
        version_str = "" if version is None else str(version)

        if not await self.is_ready(ctx, name, version_str, step="release"):
            log.debug("Model not loaded, nothing to unload")
            return False

        await self._call(
            ctx,
            "release",
            "unload_model",
            lambda timeout: self.transport.unload_model(name, timeout=timeout),
        )
        log.info("Model unloaded")
        return True
