"""Tensor codec for the engine's raw INT32 tensor contents.

Translates between ordered integer vectors and the flat little-endian byte
buffers carried in ``raw_input_contents`` / ``raw_output_contents``. The
functions here are pure: no I/O, no shared state.

Numeric semantics follow the engine's typed tensors: values are signed
two's-complement 32-bit; anything outside that range wraps modulo 2**32
instead of being rejected.
"""

import operator
from typing import List, Sequence

import numpy as np

from .errors import MalformedTensorError

INT32_BYTES = 4

# Explicit little-endian dtype so the layout never depends on the host.
_WIRE_DTYPE = np.dtype("<i4")

_INT32_SPAN = 1 << 32
_INT32_MIN = -(1 << 31)


def _wrap_int32(value: int) -> int:
    return (operator.index(value) - _INT32_MIN) % _INT32_SPAN + _INT32_MIN


def encode_vector(values: Sequence[int]) -> bytes:
    """Encode one vector; the result is always ``4 * len(values)`` bytes."""
    array = np.array([_wrap_int32(v) for v in values], dtype=_WIRE_DTYPE)
    return array.tobytes()


def encode(vectors: Sequence[Sequence[int]]) -> List[bytes]:
    """Encode vectors positionally, one buffer per vector.

    Length validation against the engine's declared shape is the caller's
    job; encoding itself has no failure path for integer input.
    """
    return [encode_vector(vector) for vector in vectors]


def decode_buffer(buffer: bytes, element_count: int) -> List[int]:
    """Decode one raw buffer holding exactly ``element_count`` int32 values.

    Raises
    - MalformedTensorError: length is not a multiple of 4 or does not equal
      ``4 * element_count``
    """
    size = len(buffer)
    if size % INT32_BYTES != 0:
        raise MalformedTensorError(
            "decode",
            f"buffer length {size} is not a multiple of {INT32_BYTES}",
        )
    if size != INT32_BYTES * element_count:
        raise MalformedTensorError(
            "decode",
            f"buffer length {size} does not match {element_count} int32 elements",
        )
    return np.frombuffer(buffer, dtype=_WIRE_DTYPE).tolist()


def decode(buffers: Sequence[bytes], element_count: int) -> List[List[int]]:
    """Decode buffers positionally; inverse of ``encode``."""
    return [decode_buffer(buffer, element_count) for buffer in buffers]
