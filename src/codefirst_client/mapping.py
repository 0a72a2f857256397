"""
Contract mapping engine.

Inspects a service contract under a `BinderConfiguration`, derives the wire
name, streaming mode and marshallers of every operation, and generates a
concrete adapter type whose methods dispatch over a `CallInvoker`.

The client factories call `map_contract` exactly on a cache miss. It is
expected to be reproducible: the same (contract, configuration) input always
describes the same operations.
"""

from __future__ import annotations

import abc
import collections.abc
import inspect
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .binder import BinderConfiguration
from .client import CodeFirstClient
from .contracts import (
    MethodDescriptor,
    MethodType,
    explicit_operation_name,
    explicit_service_name,
)
from .errors import ContractError, DuplicateOperationError, UnsupportedSignatureError

OPTIONS_PARAMETER = "options"

_EXCLUDED_BASES = (object, typing.Protocol, typing.Generic, abc.ABC, CodeFirstClient)

_SYNC_STREAMS = (
    collections.abc.Iterator,
    collections.abc.Iterable,
    collections.abc.Generator,
)
_ASYNC_STREAMS = (
    collections.abc.AsyncIterator,
    collections.abc.AsyncIterable,
    collections.abc.AsyncGenerator,
)


@dataclass(frozen=True)
class OperationBinding:
    """How one contract method maps onto a channel call."""

    attribute: str
    descriptor: MethodDescriptor
    signature: inspect.Signature
    request_parameter: str | None
    is_coroutine: bool
    use_async_channel: bool

    @property
    def channel_method(self) -> str:
        prefix = "async_" if self.use_async_channel else ""
        return f"{prefix}{self.descriptor.method_type.value}_call"


@dataclass(frozen=True)
class ContractDescription:
    contract_type: type
    service_name: str
    operations: tuple[OperationBinding, ...]

    def by_attribute(self) -> dict[str, MethodDescriptor]:
        return {op.attribute: op.descriptor for op in self.operations}


@dataclass(frozen=True)
class ProxyPlan:
    """Result of mapping a contract: how to build adapters and their type."""

    factory: Callable[[Any], Any]
    concrete_type: type
    description: ContractDescription


# =============================================================================
# Contract inspection
# =============================================================================


def _stream_info(hint: Any) -> tuple[bool, Any, bool]:
    """Return (is_stream, element_type, is_async) for an annotation."""
    base = typing.get_origin(hint) or hint
    if base in _SYNC_STREAMS or base in _ASYNC_STREAMS:
        args = typing.get_args(hint)
        element = args[0] if args else Any
        return True, element, base in _ASYNC_STREAMS
    return False, hint, False


def _iter_members(contract: type):
    seen: set[str] = set()
    for klass in contract.__mro__:
        if klass in _EXCLUDED_BASES:
            continue
        for name, value in vars(klass).items():
            if name.startswith("_") or name in seen:
                continue
            seen.add(name)
            yield name, value


def _bind_operation(
    contract: type,
    attribute: str,
    func: Callable[..., Any],
    service_name: str,
    configuration: BinderConfiguration,
) -> OperationBinding:
    def unsupported(reason: str) -> UnsupportedSignatureError:
        return UnsupportedSignatureError(
            f"{contract.__qualname__}.{attribute}: {reason}",
            contract=contract,
            member=attribute,
        )

    signature = inspect.signature(func)
    parameters = list(signature.parameters.values())
    if not parameters or parameters[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise unsupported("operations must be instance methods")

    request_parameter: str | None = None
    for param in parameters[1:]:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise unsupported(f"variadic parameter '{param.name}' is not supported")
        if param.name == OPTIONS_PARAMETER:
            continue
        if param.kind is inspect.Parameter.KEYWORD_ONLY:
            raise unsupported(f"keyword-only parameter '{param.name}' is not supported")
        if request_parameter is not None:
            raise unsupported("at most one request parameter is supported")
        request_parameter = param.name

    try:
        hints = typing.get_type_hints(func)
    except Exception as e:
        raise ContractError(
            f"Cannot resolve annotations of {contract.__qualname__}.{attribute}: {e}",
            contract=contract,
            cause=e,
        ) from e

    if request_parameter is None:
        request_hint: Any = None
    else:
        request_hint = hints.get(request_parameter, Any)
    return_hint = hints.get("return", Any)

    client_streaming, request_type, async_requests = _stream_info(request_hint)
    server_streaming, response_type, async_responses = _stream_info(return_hint)

    is_coroutine = inspect.iscoroutinefunction(func)
    if inspect.isasyncgenfunction(func) and not server_streaming:
        server_streaming, response_type, async_responses = True, Any, True
    elif inspect.isgeneratorfunction(func) and not server_streaming:
        server_streaming, response_type = True, Any

    if is_coroutine and server_streaming:
        raise unsupported("coroutine operations cannot return a stream")

    if server_streaming:
        use_async = async_responses
    else:
        use_async = is_coroutine
    if async_requests and not use_async:
        raise unsupported("async request streams require an async operation")

    method_type = MethodType.from_streams(client_streaming, server_streaming)
    method_name = explicit_operation_name(func) or configuration.naming.method_name(attribute)
    marshallers = configuration.marshallers

    descriptor = MethodDescriptor(
        service_name=service_name,
        name=method_name,
        method_type=method_type,
        request_marshaller=marshallers.create(request_type),
        response_marshaller=marshallers.create(response_type),
    )
    return OperationBinding(
        attribute=attribute,
        descriptor=descriptor,
        signature=signature,
        request_parameter=request_parameter,
        is_coroutine=is_coroutine,
        use_async_channel=use_async,
    )


def describe_contract(
    contract_type: type,
    configuration: BinderConfiguration | None = None,
) -> ContractDescription:
    """
    Derive the wire operations of a contract.

    Raises:
        ContractError: the contract is not a class, has no operations, or two
            operations share a wire name
        UnsupportedSignatureError: a member cannot be dispatched
    """
    configuration = configuration or BinderConfiguration.default()
    if not isinstance(contract_type, type):
        raise ContractError(f"Service contracts must be classes, got {contract_type!r}")

    service_name = explicit_service_name(contract_type) or configuration.naming.service_name(
        contract_type.__name__
    )

    operations: list[OperationBinding] = []
    wire_names: dict[str, str] = {}
    for attribute, value in _iter_members(contract_type):
        if isinstance(value, (staticmethod, classmethod, property)):
            raise UnsupportedSignatureError(
                f"{contract_type.__qualname__}.{attribute}: "
                f"{type(value).__name__} members cannot be remote operations",
                contract=contract_type,
                member=attribute,
            )
        if not inspect.isfunction(value):
            continue

        binding = _bind_operation(contract_type, attribute, value, service_name, configuration)
        name = binding.descriptor.name
        if name in wire_names:
            raise DuplicateOperationError(
                f"{contract_type.__qualname__}: '{attribute}' and '{wire_names[name]}' "
                f"both map to {binding.descriptor.full_name}",
                contract=contract_type,
            )
        wire_names[name] = attribute
        operations.append(binding)

    if not operations:
        raise ContractError(
            f"{contract_type.__qualname__} defines no operations",
            contract=contract_type,
        )

    return ContractDescription(
        contract_type=contract_type,
        service_name=service_name,
        operations=tuple(operations),
    )


# =============================================================================
# Adapter generation
# =============================================================================


def _make_method(binding: OperationBinding, qualname_prefix: str) -> Callable[..., Any]:
    descriptor = binding.descriptor
    signature = binding.signature
    request_parameter = binding.request_parameter
    channel_method = binding.channel_method

    def unpack(args: tuple, kwargs: dict) -> tuple[Any, Any]:
        # Bind against the contract's own signature so positional and keyword
        # calls (and defaults) behave exactly as declared.
        bound = signature.bind(None, *args, **kwargs)
        bound.apply_defaults()
        arguments = bound.arguments
        request = arguments.get(request_parameter) if request_parameter else None
        return request, arguments.get(OPTIONS_PARAMETER)

    if binding.is_coroutine:

        async def invoke(self, *args, **kwargs):
            request, options = unpack(args, kwargs)
            return await getattr(self.channel, channel_method)(descriptor, request, options)

    else:

        def invoke(self, *args, **kwargs):
            request, options = unpack(args, kwargs)
            return getattr(self.channel, channel_method)(descriptor, request, options)

    invoke.__name__ = binding.attribute
    invoke.__qualname__ = f"{qualname_prefix}.{binding.attribute}"
    invoke.__signature__ = signature  # type: ignore[attr-defined]
    return invoke


def map_contract(
    contract_type: type,
    configuration: BinderConfiguration,
) -> ProxyPlan:
    """Map a contract and generate its adapter type."""
    description = describe_contract(contract_type, configuration)

    proxy_name = f"{contract_type.__name__}Proxy"
    namespace: dict[str, Any] = {
        "__module__": contract_type.__module__,
        "__qualname__": f"{contract_type.__qualname__}Proxy",
        "__doc__": f"Generated adapter for {description.service_name}.",
        "contract_type": contract_type,
        "binder_configuration": configuration,
        "operations": description.by_attribute(),
    }
    for binding in description.operations:
        namespace[binding.attribute] = _make_method(binding, namespace["__qualname__"])

    try:
        proxy_type = types.new_class(
            proxy_name,
            (CodeFirstClient, contract_type),
            exec_body=lambda ns: ns.update(namespace),
        )
    except TypeError as e:
        raise ContractError(
            f"Cannot derive an adapter from {contract_type.__qualname__}: {e}",
            contract=contract_type,
            cause=e,
        ) from e

    abstract = getattr(proxy_type, "__abstractmethods__", frozenset())
    if abstract:
        raise ContractError(
            f"{contract_type.__qualname__} leaves abstract members that are not "
            f"operations: {', '.join(sorted(abstract))}",
            contract=contract_type,
        )

    return ProxyPlan(factory=proxy_type, concrete_type=proxy_type, description=description)


__all__ = [
    "OperationBinding",
    "ContractDescription",
    "ProxyPlan",
    "describe_contract",
    "map_contract",
]
