"""Inference request orchestration against a Triton-compatible engine.

- ``codec``: int32 little-endian tensor encoding
- ``formatter``: sum/difference result strings
- ``transport`` / ``triton``: engine client interface and gRPC implementation
- ``lifecycle``: check-and-load / check-and-unload of engine models
- ``orchestrator``: the end-to-end message flow
- ``errors``: step-tagged error taxonomy
"""

from .errors import (
    InferenceError,
    InferenceTimeoutError,
    InvalidInputError,
    LengthMismatchError,
    LifecycleError,
    MalformedTensorError,
    MetadataError,
    MetadataNotFoundError,
    OrchestrationError,
    PersistenceError,
)
from .lifecycle import ModelLifecycleManager
from .orchestrator import InferenceOrchestrator, MessageView
from .transport import InferenceTransport, TensorSpec, TransportError, TransportTimeoutError

__all__ = [
    "InferenceError",
    "InferenceOrchestrator",
    "InferenceTimeoutError",
    "InferenceTransport",
    "InvalidInputError",
    "LengthMismatchError",
    "LifecycleError",
    "MalformedTensorError",
    "MessageView",
    "MetadataError",
    "MetadataNotFoundError",
    "ModelLifecycleManager",
    "OrchestrationError",
    "PersistenceError",
    "TensorSpec",
    "TransportError",
    "TransportTimeoutError",
]
