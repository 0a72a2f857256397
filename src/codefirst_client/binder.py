"""
Binder configuration: the rules that map a contract onto wire operations.

A `BinderConfiguration` pairs a `NamingPolicy` (service and method wire names)
with a `MarshallerFactory` (payload encoding). Configurations are immutable
and compared by value; the client factories use them purely as cache
partition keys.
"""

from __future__ import annotations

import dataclasses
import re
import types
import typing
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from .errors import MarshallingError
from .hashing import content_hash
from .serialization import canonicalize, fast_json_dumps, fast_json_loads, stable_json_dumps

_INTERFACE_NAME = re.compile(r"^I[A-Z]")


@dataclass(frozen=True)
class NamingPolicy:
    """
    Derives wire names from Python names.

    Attributes:
        package: Optional prefix for service names ("pkg" -> "pkg.Greeter")
        strip_interface_prefix: Drop a leading interface "I" ("IGreeter" -> "Greeter")
        strip_async_suffix: Drop "Async"/"_async" from method names
        pascal_case: Convert snake_case method names to PascalCase
    """

    package: str | None = None
    strip_interface_prefix: bool = True
    strip_async_suffix: bool = True
    pascal_case: bool = False

    def service_name(self, type_name: str) -> str:
        name = type_name
        if self.strip_interface_prefix and _INTERFACE_NAME.match(name):
            name = name[1:]
        if self.package:
            name = f"{self.package}.{name}"
        return name

    def method_name(self, attribute_name: str) -> str:
        name = attribute_name
        if self.strip_async_suffix:
            for suffix in ("_async", "Async"):
                if name.endswith(suffix) and len(name) > len(suffix):
                    name = name[: -len(suffix)]
                    break
        if self.pascal_case:
            name = "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)
        return name


# =============================================================================
# Marshalling
# =============================================================================


@dataclass(frozen=True)
class Marshaller:
    """Serializer/deserializer pair for one message type."""

    serializer: Callable[[Any], bytes]
    deserializer: Callable[[bytes], Any]
    message_type: Any = None

    def serialize(self, value: Any) -> bytes:
        try:
            return self.serializer(value)
        except MarshallingError:
            raise
        except (TypeError, ValueError) as e:
            raise MarshallingError(
                f"Cannot serialize {type(value).__name__}: {e}",
                cause=e,
            ) from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return self.deserializer(data)
        except MarshallingError:
            raise
        except (TypeError, ValueError) as e:
            raise MarshallingError(
                f"Cannot deserialize {_type_label(self.message_type)}: {e}",
                cause=e,
            ) from e


def _type_label(message_type: Any) -> str:
    return getattr(message_type, "__name__", None) or repr(message_type)


class MarshallerFactory(ABC):
    """Creates marshallers for the request/response types of a contract."""

    name: str = "abstract"

    @abstractmethod
    def create(self, message_type: Any) -> Marshaller:
        """Create a marshaller for `message_type` (None for empty messages)."""

    def describe(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass(frozen=True)
class JsonMarshallerFactory(MarshallerFactory):
    """
    JSON payloads via orjson.

    Dataclass message types (and `Optional` dataclasses) are encoded from
    their fields and rebuilt with `cls(**data)`; other types travel as plain
    JSON. Only the top-level message is rebuilt: containers such as
    `list[Reply]` and nested dataclass fields come back as lists and dicts.
    `stable=True` sorts keys and canonicalizes values so equal messages
    encode to equal bytes.
    """

    stable: bool = False
    name: str = field(default="json", init=False)

    def _dumps(self, value: Any) -> bytes:
        if self.stable:
            return stable_json_dumps(value).encode("utf-8")
        return fast_json_dumps(canonicalize(value))

    def create(self, message_type: Any) -> Marshaller:
        if message_type is None or message_type is type(None):
            return Marshaller(_empty_serializer, _empty_deserializer, None)

        target = _dataclass_target(message_type)
        if target is not None:
            def deserialize_dataclass(data: bytes) -> Any:
                value = fast_json_loads(data)
                return None if value is None else target(**value)

            return Marshaller(self._dumps, deserialize_dataclass, message_type)

        return Marshaller(self._dumps, fast_json_loads, message_type)

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "stable": self.stable}


def _dataclass_target(message_type: Any) -> type | None:
    if isinstance(message_type, type) and dataclasses.is_dataclass(message_type):
        return message_type
    if typing.get_origin(message_type) in (typing.Union, types.UnionType):
        members = [arg for arg in typing.get_args(message_type) if arg is not type(None)]
        if len(members) == 1:
            return _dataclass_target(members[0])
    return None


def _empty_serializer(value: Any) -> bytes:
    if value is not None:
        raise MarshallingError(f"Empty message expected, got {type(value).__name__}")
    return b""


def _empty_deserializer(data: bytes) -> None:
    return None


# =============================================================================
# Binder Configuration
# =============================================================================


@dataclass(frozen=True)
class BinderConfiguration:
    """
    Immutable rule set governing how contracts map to wire operations.

    Two configurations with equal rules compare equal; the factories treat
    equal configurations as the same cache partition.
    """

    naming: NamingPolicy = field(default_factory=NamingPolicy)
    marshallers: MarshallerFactory = field(default_factory=JsonMarshallerFactory)

    @classmethod
    def default(cls) -> BinderConfiguration:
        """The process-wide default configuration."""
        return _DEFAULT_CONFIGURATION

    @cached_property
    def fingerprint(self) -> str:
        """Short content hash of the rules, for log fields."""
        return content_hash(self.to_dict())[:12]

    @property
    def is_default(self) -> bool:
        return self == _DEFAULT_CONFIGURATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "naming": dataclasses.asdict(self.naming),
            "marshallers": self.marshallers.describe(),
        }


_DEFAULT_CONFIGURATION = BinderConfiguration()


__all__ = [
    "NamingPolicy",
    "Marshaller",
    "MarshallerFactory",
    "JsonMarshallerFactory",
    "BinderConfiguration",
]
