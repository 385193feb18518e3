"""
Binary codec for embedding vectors stored as SQLite BLOBs.

Layout: consecutive little-endian IEEE-754 float64 components, no header and
no delimiters. The dimension is implied by the buffer length.
"""

from typing import Sequence, Union

import numpy as np

from ..core.errors import MalformedVectorError

VECTOR_DTYPE = np.dtype('<f8')
COMPONENT_WIDTH = VECTOR_DTYPE.itemsize


def encode_vector(vector: Union[Sequence[float], np.ndarray]) -> bytes:
    """Serialize a vector to bytes."""
    array = np.asarray(vector, dtype=VECTOR_DTYPE)
    if array.ndim != 1:
        raise ValueError(f"Expected a one-dimensional vector, got shape {array.shape}")
    return array.tobytes()


def decode_vector(buffer: bytes) -> np.ndarray:
    """Deserialize bytes produced by encode_vector back into a float64 array."""
    if buffer is None:
        raise MalformedVectorError("Vector buffer is missing")

    if len(buffer) % COMPONENT_WIDTH != 0:
        raise MalformedVectorError(
            f"Vector buffer length {len(buffer)} is not a multiple of {COMPONENT_WIDTH} bytes"
        )

    # frombuffer returns a read-only view; copy so callers own the data
    return np.frombuffer(buffer, dtype=VECTOR_DTYPE).astype(np.float64, copy=True)
