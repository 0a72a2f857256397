"""
Hashing utilities for codefirst-client.

Binder configurations are fingerprinted by content so that log records and
error contexts can name a rule set without dumping it.
"""

from __future__ import annotations

import hashlib
from typing import Any, Literal

from blake3 import blake3

from .serialization import stable_json_dumps

HashAlgorithm = Literal["blake3", "sha256"]


def compute_hash(
    data: str | bytes,
    algorithm: HashAlgorithm = "blake3",
    truncate: int | None = None,
) -> str:
    """
    Compute a hash using the specified algorithm.

    Args:
        data: Input data to hash (string or bytes)
        algorithm: "blake3" (default) or "sha256"
        truncate: Truncate output to N characters (for shorter keys)

    Returns:
        Hexadecimal hash string
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    if algorithm == "blake3":
        result = blake3(data).hexdigest()
    elif algorithm == "sha256":
        result = hashlib.sha256(data).hexdigest()
    else:
        raise ValueError(f"Unknown algorithm: {algorithm}")

    return result[:truncate] if truncate else result


def content_hash(obj: Any) -> str:
    """
    Generate a deterministic content hash for any JSON-serializable object.

    Returns:
        64-character hexadecimal hash
    """
    return blake3(stable_json_dumps(obj).encode("utf-8")).hexdigest()


__all__ = [
    "HashAlgorithm",
    "compute_hash",
    "content_hash",
]
