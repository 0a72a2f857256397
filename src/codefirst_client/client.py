"""
Client-side adapter types.

- `CodeFirstClient`: base class of every generated adapter. It only carries
  the channel; the generated subclass supplies the operations.
- `ContractClient`: a deferred handle returned by
  `ClientFactory.create_adapter`. It records what to build and resolves the
  adapter through the owning factory's cache on first use.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

if TYPE_CHECKING:
    from .binder import BinderConfiguration
    from .channel import CallInvoker
    from .contracts import MethodDescriptor
    from .factory import ClientFactory

T = TypeVar("T")


class CodeFirstClient:
    """Base class for generated service adapters."""

    contract_type: ClassVar[type]
    binder_configuration: ClassVar[BinderConfiguration]
    operations: ClassVar[dict[str, MethodDescriptor]]

    def __init__(self, channel: CallInvoker) -> None:
        self.channel = channel

    def as_contract(self) -> Any:
        """Return this adapter typed as its service contract."""
        return self

    def __repr__(self) -> str:
        contract = getattr(type(self), "contract_type", None)
        name = contract.__qualname__ if contract is not None else "?"
        return f"<{type(self).__name__} for {name} over {self.channel!r}>"


class ContractClient(Generic[T]):
    """
    Lightweight handle for a contract bound to a channel.

    Nothing is mapped or instantiated until `as_contract()` or `client_type`
    is first used.
    """

    def __init__(
        self,
        channel: CallInvoker,
        contract_type: type[T],
        factory: ClientFactory,
    ) -> None:
        self.channel = channel
        self.contract_type = contract_type
        self._factory = factory
        self._lock = threading.Lock()
        self._service: T | None = None

    @property
    def binder_configuration(self) -> BinderConfiguration:
        return self._factory.binder_configuration

    @property
    def client_type(self) -> type:
        """Concrete adapter type, without creating an instance."""
        return self._factory.get_client_type(self.contract_type)

    def as_contract(self) -> T:
        """Resolve (once) and return the contract-typed adapter."""
        service = self._service
        if service is None:
            with self._lock:
                if self._service is None:
                    self._service = self._factory.create_client(self.contract_type, self.channel)
                service = self._service
        return service

    def __repr__(self) -> str:
        state = "resolved" if self._service is not None else "deferred"
        return (
            f"ContractClient({self.contract_type.__qualname__}, "
            f"configuration={self.binder_configuration.fingerprint}, {state})"
        )


__all__ = ["CodeFirstClient", "ContractClient"]
