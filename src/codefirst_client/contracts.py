"""
Contract markers and wire-level descriptions of operations.

A service contract is an ordinary Python class (usually an `abc.ABC` or a
`typing.Protocol`) whose public methods are remote operations:

    ```python
    @service(name="demo.Greeter")
    class Greeter(Protocol):
        def say_hello(self, request: HelloRequest) -> HelloReply: ...

        @operation(name="Farewell")
        async def say_goodbye_async(self, request: HelloRequest) -> HelloReply: ...
    ```
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from .binder import Marshaller

C = TypeVar("C", bound=type)
F = TypeVar("F", bound=Callable[..., Any])

SERVICE_NAME_ATTR = "__codefirst_service__"
OPERATION_NAME_ATTR = "__codefirst_operation__"


def service(name: str) -> Callable[[C], C]:
    """Pin the wire service name of a contract, bypassing the naming policy."""

    def decorator(contract: C) -> C:
        setattr(contract, SERVICE_NAME_ATTR, name)
        return contract

    return decorator


def operation(name: str) -> Callable[[F], F]:
    """Pin the wire method name of a contract operation."""

    def decorator(func: F) -> F:
        setattr(func, OPERATION_NAME_ATTR, name)
        return func

    return decorator


def explicit_service_name(contract: type) -> str | None:
    # Only the contract's own declaration counts; subclasses get their own name.
    return contract.__dict__.get(SERVICE_NAME_ATTR)


def explicit_operation_name(func: Any) -> str | None:
    return getattr(func, OPERATION_NAME_ATTR, None)


class MethodType(str, Enum):
    """Streaming mode of an operation."""

    UNARY = "unary"
    CLIENT_STREAMING = "client_streaming"
    SERVER_STREAMING = "server_streaming"
    DUPLEX_STREAMING = "duplex_streaming"

    @classmethod
    def from_streams(cls, client_streaming: bool, server_streaming: bool) -> MethodType:
        if client_streaming and server_streaming:
            return cls.DUPLEX_STREAMING
        if client_streaming:
            return cls.CLIENT_STREAMING
        if server_streaming:
            return cls.SERVER_STREAMING
        return cls.UNARY


@dataclass(frozen=True)
class CallOptions:
    """Per-call options passed through to the channel untouched."""

    timeout: float | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash((self.timeout, tuple(sorted(self.metadata.items()))))


@dataclass(frozen=True)
class MethodDescriptor:
    """Everything a channel needs to issue one call."""

    service_name: str
    name: str
    method_type: MethodType
    request_marshaller: Marshaller
    response_marshaller: Marshaller

    @property
    def full_name(self) -> str:
        return f"/{self.service_name}/{self.name}"

    def __repr__(self) -> str:
        return f"MethodDescriptor({self.full_name!r}, {self.method_type.value})"


__all__ = [
    "service",
    "operation",
    "explicit_service_name",
    "explicit_operation_name",
    "MethodType",
    "CallOptions",
    "MethodDescriptor",
]
