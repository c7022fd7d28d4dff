"""Request-scoped context passed explicitly through every call.

A ``RequestContext`` carries the identifiers and the deadline of one unit of
work (one HTTP request, one CLI invocation). It is created at the boundary
and handed down to the orchestrator, the lifecycle manager, and the
transport, so nothing request-specific lives in module globals.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class RequestContext:
    """Identifiers and deadline for a single request.

    Attributes
    - request_id: Trace identifier propagated to logs, spans, and the engine
    - user_id: Caller identity when known
    - deadline: Absolute ``time.monotonic()`` value after which remote calls
      must not start; ``None`` means only per-call budgets apply
    """

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    user_id: Optional[int] = None
    deadline: Optional[float] = None

    @classmethod
    def new(
        cls,
        request_id: Optional[str] = None,
        user_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> "RequestContext":
        """Create a context, optionally with a deadline ``timeout`` seconds from now."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        return cls(
            request_id=request_id or uuid.uuid4().hex,
            user_id=user_id,
            deadline=deadline,
        )

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or ``None``."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def timeout_for(self, budget: float) -> float:
        """Timeout for one remote call: the call budget capped by the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return budget
        return min(budget, remaining)

    def bind(self, logger: Any) -> Any:
        """Return ``logger`` with this request's identifiers bound."""
        if self.user_id is not None:
            return logger.bind(request_id=self.request_id, user_id=self.user_id)
        return logger.bind(request_id=self.request_id)
