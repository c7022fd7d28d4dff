"""Error taxonomy for inference orchestration.

Every error names the step that failed. Callers receive these verbatim:
nothing in ``hnn.inference`` retries or silently recovers.
"""


class OrchestrationError(Exception):
    """Base exception for a failed orchestration step."""

    code = "orchestration_error"

    def __init__(self, step: str, message: str):
        self.step = step
        self.message = message
        super().__init__(f"{step}: {message}")


class InvalidInputError(OrchestrationError):
    """Input vector length or shape does not match the tensor contract."""

    code = "invalid_input"


class MetadataError(OrchestrationError):
    """The metadata store could not resolve a model or version."""

    code = "metadata_error"


class MetadataNotFoundError(MetadataError):
    """Unknown model or version id."""

    code = "metadata_not_found"


class LifecycleError(OrchestrationError):
    """Readiness, load, or unload call failed at the transport level."""

    code = "lifecycle_error"


class InferenceError(OrchestrationError):
    """The infer call failed or returned unusable tensors."""

    code = "inference_error"


class MalformedTensorError(InferenceError):
    """A raw tensor buffer does not match the expected int32 layout."""

    code = "malformed_tensor"


class InferenceTimeoutError(OrchestrationError):
    """A remote call exceeded its deadline."""

    code = "timeout"


class PersistenceError(OrchestrationError):
    """Durable write or read of messages failed.

    On the write path the inference has already happened and is not rolled
    back.
    """

    code = "persistence_error"


class LengthMismatchError(OrchestrationError):
    """Result formatting was given sequences of different lengths."""

    code = "length_mismatch"
