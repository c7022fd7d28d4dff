"""Deadline-bounded remote calls.

Each engine call gets ``min(call budget, time left on the request)``. The
bound is enforced here with ``asyncio.wait_for`` regardless of whether the
transport honours its own ``timeout`` argument; cancellation of the caller's
task propagates into the in-flight call unchanged.
"""

import asyncio
from typing import Any, Awaitable, Callable

from hnn.common.context import RequestContext

from .errors import InferenceTimeoutError
from .transport import TransportTimeoutError

DEFAULT_CALL_TIMEOUT = 10.0


async def bounded_call(
    ctx: RequestContext,
    step: str,
    call: Callable[[float], Awaitable[Any]],
    budget: float = DEFAULT_CALL_TIMEOUT,
) -> Any:
    """Run ``call(timeout)`` under the request deadline.

    Raises
    - InferenceTimeoutError: the deadline had already passed, or the call
      did not finish in time
    """
    timeout = ctx.timeout_for(budget)
    if timeout <= 0:
        raise InferenceTimeoutError(step, "request deadline passed before the call started")
    try:
        return await asyncio.wait_for(call(timeout), timeout)
    except (asyncio.TimeoutError, TransportTimeoutError) as e:
        raise InferenceTimeoutError(step, f"remote call exceeded {timeout:.3f}s") from e
