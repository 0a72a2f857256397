"""
Deterministic JSON serialization helpers for marshalling and hashing.

Backed by orjson.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any

import orjson


def _type_id(obj_type: type) -> str:
    return f"{obj_type.__module__}.{obj_type.__qualname__}"


def canonicalize(obj: Any) -> Any:
    """
    Convert complex objects into JSON-friendly, deterministic structures.
    """
    if isinstance(obj, dict):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(v) for v in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted((canonicalize(v) for v in obj), key=repr)
    if isinstance(obj, type):
        return {"__type__": _type_id(obj)}
    if isinstance(obj, Enum):
        return canonicalize(obj.value)
    if dataclasses.is_dataclass(obj):
        return canonicalize(dataclasses.asdict(obj))
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return canonicalize(obj.to_dict())
    return obj


def stable_json_dumps(obj: Any) -> str:
    """
    Dump an object to JSON with stable ordering for hashing.
    """
    return orjson.dumps(canonicalize(obj), option=orjson.OPT_SORT_KEYS).decode("utf-8")


def fast_json_dumps(obj: Any) -> bytes:
    """
    Fast JSON serialization to bytes (non-canonical, for payloads).
    """
    return orjson.dumps(obj)


def fast_json_loads(data: bytes | str) -> Any:
    """
    Fast JSON deserialization.
    """
    return orjson.loads(data)


__all__ = [
    "canonicalize",
    "stable_json_dumps",
    "fast_json_dumps",
    "fast_json_loads",
]
