"""
Call channels.

`CallInvoker` is the transport capability a generated adapter dispatches
over. The client factories never inspect it; they only hand it to adapters.

`LocalChannel` is an in-process implementation that serves calls from a
Python object implementing the contract. Every request and response is
round-tripped through the method's marshallers, so adapters exercised
against it see exactly the values a remote peer would produce.
"""

from __future__ import annotations

import collections.abc
import inspect
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from .binder import BinderConfiguration
from .concurrency import run_sync
from .contracts import CallOptions, MethodDescriptor
from .errors import ChannelError, MethodNotFoundError
from .mapping import ContractDescription, describe_contract

_END = object()


async def _drain(requests: Any) -> Any:
    if isinstance(requests, collections.abc.AsyncIterable):
        return [item async for item in requests]
    return requests


async def _bridge(responses: Iterable[Any]) -> AsyncIterator[Any]:
    iterator = iter(responses)
    while True:
        item = await run_sync(next, iterator, _END)
        if item is _END:
            return
        yield item


class CallInvoker(ABC):
    """
    Abstract call channel.

    Implementations provide the four blocking call shapes. The async
    variants default to running the blocking ones on a worker thread;
    transports with native async support should override them.
    """

    @abstractmethod
    def unary_call(
        self,
        method: MethodDescriptor,
        request: Any,
        options: CallOptions | None = None,
    ) -> Any:
        """Send one request, return one response."""

    @abstractmethod
    def client_streaming_call(
        self,
        method: MethodDescriptor,
        requests: Iterable[Any],
        options: CallOptions | None = None,
    ) -> Any:
        """Send a stream of requests, return one response."""

    @abstractmethod
    def server_streaming_call(
        self,
        method: MethodDescriptor,
        request: Any,
        options: CallOptions | None = None,
    ) -> Iterator[Any]:
        """Send one request, return a stream of responses."""

    @abstractmethod
    def duplex_streaming_call(
        self,
        method: MethodDescriptor,
        requests: Iterable[Any],
        options: CallOptions | None = None,
    ) -> Iterator[Any]:
        """Send a stream of requests, return a stream of responses."""

    async def async_unary_call(
        self,
        method: MethodDescriptor,
        request: Any,
        options: CallOptions | None = None,
    ) -> Any:
        return await run_sync(self.unary_call, method, request, options)

    async def async_client_streaming_call(
        self,
        method: MethodDescriptor,
        requests: Any,
        options: CallOptions | None = None,
    ) -> Any:
        requests = await _drain(requests)
        return await run_sync(self.client_streaming_call, method, requests, options)

    async def async_server_streaming_call(
        self,
        method: MethodDescriptor,
        request: Any,
        options: CallOptions | None = None,
    ) -> AsyncIterator[Any]:
        responses = await run_sync(self.server_streaming_call, method, request, options)
        async for item in _bridge(responses):
            yield item

    async def async_duplex_streaming_call(
        self,
        method: MethodDescriptor,
        requests: Any,
        options: CallOptions | None = None,
    ) -> AsyncIterator[Any]:
        requests = await _drain(requests)
        responses = await run_sync(self.duplex_streaming_call, method, requests, options)
        async for item in _bridge(responses):
            yield item


# =============================================================================
# In-process channel
# =============================================================================


@dataclass(frozen=True)
class _Handler:
    descriptor: MethodDescriptor
    target: Callable[..., Any]
    takes_request: bool

    def __call__(self, request: Any) -> Any:
        if self.takes_request:
            return self.target(request)
        return self.target()


class LocalChannel(CallInvoker):
    """
    Serves contract calls from local implementation objects.

    Example:
        ```python
        channel = LocalChannel()
        channel.register(Greeter, GreeterService())

        greeter = ClientFactory.default().create_client(Greeter, channel)
        reply = greeter.say_hello(HelloRequest(name="world"))
        ```

    Blocking calls require blocking handlers; `async_unary_call` also accepts
    coroutine handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, _Handler] = {}

    def register(
        self,
        contract_type: type,
        implementation: Any,
        binder_configuration: BinderConfiguration | None = None,
    ) -> ContractDescription:
        """Bind `implementation` to every operation of `contract_type`."""
        description = describe_contract(contract_type, binder_configuration)
        handlers: dict[str, _Handler] = {}
        for op in description.operations:
            target = getattr(implementation, op.attribute, None)
            if not callable(target):
                raise ChannelError(
                    f"{type(implementation).__name__} does not implement "
                    f"{contract_type.__qualname__}.{op.attribute}"
                )
            handlers[op.descriptor.full_name] = _Handler(
                op.descriptor, target, op.request_parameter is not None
            )
        self._handlers.update(handlers)
        return description

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    def _lookup(self, method: MethodDescriptor) -> _Handler:
        handler = self._handlers.get(method.full_name)
        if handler is None:
            raise MethodNotFoundError(method=method.full_name)
        return handler

    @staticmethod
    def _ensure_sync(result: Any, method: MethodDescriptor) -> Any:
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise ChannelError(
                f"Handler for {method.full_name} is async and cannot serve a blocking call"
            )
        return result

    @staticmethod
    def _inbound(method: MethodDescriptor, handler: _Handler, request: Any) -> Any:
        payload = method.request_marshaller.serialize(request)
        return handler.descriptor.request_marshaller.deserialize(payload)

    @staticmethod
    def _outbound(method: MethodDescriptor, handler: _Handler, response: Any) -> Any:
        payload = handler.descriptor.response_marshaller.serialize(response)
        return method.response_marshaller.deserialize(payload)

    def _relay(self, method: MethodDescriptor, handler: _Handler, responses: Any) -> Iterator[Any]:
        for response in responses:
            yield self._outbound(method, handler, response)

    def unary_call(self, method, request, options=None):
        handler = self._lookup(method)
        result = self._ensure_sync(handler(self._inbound(method, handler, request)), method)
        return self._outbound(method, handler, result)

    def client_streaming_call(self, method, requests, options=None):
        handler = self._lookup(method)
        inbound = (self._inbound(method, handler, r) for r in requests)
        result = self._ensure_sync(handler(inbound), method)
        return self._outbound(method, handler, result)

    def server_streaming_call(self, method, request, options=None):
        handler = self._lookup(method)
        responses = self._ensure_sync(handler(self._inbound(method, handler, request)), method)
        return self._relay(method, handler, responses)

    def duplex_streaming_call(self, method, requests, options=None):
        handler = self._lookup(method)
        inbound = (self._inbound(method, handler, r) for r in requests)
        responses = self._ensure_sync(handler(inbound), method)
        return self._relay(method, handler, responses)

    async def async_unary_call(self, method, request, options=None):
        handler = self._lookup(method)
        result = handler(self._inbound(method, handler, request))
        if inspect.isawaitable(result):
            result = await result
        return self._outbound(method, handler, result)

    def __repr__(self) -> str:
        return f"LocalChannel({len(self._handlers)} methods)"


__all__ = ["CallInvoker", "LocalChannel"]
