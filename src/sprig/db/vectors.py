"""Embedding vector encoding and cosine similarity.

Vectors are stored as packed little-endian float32 values, component order
preserved, so an index written by any implementation reads back identically.
"""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

_FLOAT32 = struct.Struct("<f")


def vector_to_bytes(vector: Sequence[float]) -> bytes:
    """Pack *vector* into little-endian float32 bytes for BLOB storage."""
    return struct.pack(f"<{len(vector)}f", *vector)


def bytes_to_vector(data: bytes) -> list[float]:
    """Unpack little-endian float32 bytes back into a list of floats.

    Raises:
        ValueError: If *data* is not a whole number of float32 values.
    """
    if len(data) % _FLOAT32.size:
        raise ValueError(
            f"Embedding blob of {len(data)} bytes is not a multiple of {_FLOAT32.size}"
        )
    return list(struct.unpack(f"<{len(data) // _FLOAT32.size}f", data))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b*.

    0.0 when either vector is empty, the lengths differ, or a norm is zero.
    """
    if not a or len(a) != len(b):
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    denom = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denom == 0.0:
        return 0.0
    return dot / denom
