"""Inference transport interface.

Defines the abstract contract the orchestrator depends on, independent of the
client library used to reach the engine (Triton gRPC today). Test doubles
implement the same interface.

All methods are asynchronous; every remote call accepts a ``timeout`` in
seconds and must raise ``TransportTimeoutError`` when it is exceeded.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

# Tensor contract with the served model.
INPUT_NAMES: Tuple[str, str] = ("INPUT0", "INPUT1")
OUTPUT_NAMES: Tuple[str, str] = ("OUTPUT0", "OUTPUT1")
TENSOR_DATATYPE = "INT32"
DEFAULT_TENSOR_LENGTH = 16


def tensor_shape(length: int) -> List[int]:
    """Shape of every input and output tensor: one batch row of ``length``."""
    return [1, length]


@dataclass(frozen=True)
class TensorSpec:
    """A named input tensor with its raw little-endian content."""

    name: str
    datatype: str
    shape: Tuple[int, ...]
    raw: bytes


class InferenceTransport(ABC):
    """Abstract client for the inference engine.

    Implementations own a long-lived connection that is reused across
    requests; the service process is responsible for closing it.
    """

    @abstractmethod
    async def is_model_ready(
        self,
        name: str,
        version: str = "",
        timeout: Optional[float] = None
    ) -> bool:
        """Whether ``name`` (at ``version``, or any version when empty) can serve."""
        pass

    @abstractmethod
    async def load_model(self, name: str, timeout: Optional[float] = None) -> None:
        """Ask the engine to load ``name``.

        Returning without error does not guarantee the model is ready yet.
        """
        pass

    @abstractmethod
    async def unload_model(self, name: str, timeout: Optional[float] = None) -> None:
        """Ask the engine to unload ``name``."""
        pass

    @abstractmethod
    async def infer(
        self,
        name: str,
        version: str,
        inputs: Sequence[TensorSpec],
        outputs: Sequence[str],
        timeout: Optional[float] = None,
        request_id: str = ""
    ) -> Dict[str, bytes]:
        """Run inference and return raw output buffers keyed by output name."""
        pass

    @abstractmethod
    async def is_server_live(self, timeout: Optional[float] = None) -> bool:
        """Engine liveness probe."""
        pass

    @abstractmethod
    async def is_server_ready(self, timeout: Optional[float] = None) -> bool:
        """Engine readiness probe."""
        pass

    async def close(self) -> None:
        """Release the underlying connection."""
        return None


class TransportError(Exception):
    """Base exception for engine calls."""
    pass


class TransportTimeoutError(TransportError):
    """An engine call exceeded its deadline."""
    pass
