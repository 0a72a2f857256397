"""
Client factories.

`ClientFactory` turns a service contract and a channel into an adapter
implementing the contract. Mapping a contract is expensive, so each factory
memoizes the result per contract:

- The default factory (default `BinderConfiguration`) keeps one process-wide
  compute-once slot per contract. The mapping engine runs at most once per
  contract for the life of the process.
- A configured factory owns a dict from contract to `CacheEntry`. Misses are
  built without holding a lock; racing builders publish with an atomic
  insert-if-absent and every loser adopts the winner's entry, so exactly one
  adapter type exists per (contract, configuration).

Example:
    ```python
    greeter = ClientFactory.default().create_client(Greeter, channel)

    # Non-default factories own a fresh cache: create once, keep it.
    factory = ClientFactory.create(BinderConfiguration(naming=NamingPolicy(package="demo")))
    greeter = factory.create_client(Greeter, channel)
    ```
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from . import mapping
from .binder import BinderConfiguration
from .channel import CallInvoker
from .client import ContractClient
from .concurrency import OnceCell
from .logging import BuildLog, describe_type, get_logger, timed

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry:
    """Published (factory, concrete type) pair for one contract."""

    factory: Callable[[CallInvoker], Any]
    concrete_type: type


def _require_contract(contract_type: Any) -> None:
    if not isinstance(contract_type, type):
        raise TypeError(f"contract_type must be a class, got {contract_type!r}")


def _build_entry(contract_type: type, configuration: BinderConfiguration) -> CacheEntry:
    """Run the mapping engine; errors propagate after being logged."""
    logger = get_logger()
    contract_name = describe_type(contract_type)
    logger.log_cache_miss(contract_name, configuration.fingerprint)
    try:
        with timed() as timer:
            plan = mapping.map_contract(contract_type, configuration)
    except Exception as e:
        logger.log_error(
            e,
            f"Mapping {contract_name} failed",
            contract=contract_name,
            configuration=configuration.fingerprint,
        )
        raise
    entry = CacheEntry(factory=plan.factory, concrete_type=plan.concrete_type)
    logger.log_build(
        BuildLog(
            contract=contract_name,
            configuration=configuration.fingerprint,
            concrete_type=describe_type(entry.concrete_type),
            outcome="built",
            operation_count=len(plan.description.operations),
            duration_ms=timer.elapsed_ms,
        )
    )
    return entry


class ClientFactory(ABC):
    """
    Provides services for creating service clients (adapters).

    Every factory is bound to one `BinderConfiguration` for its lifetime.
    """

    @staticmethod
    def default() -> ClientFactory:
        """The default client factory (uses the default BinderConfiguration)."""
        return _DefaultClientFactory.INSTANCE

    @staticmethod
    def create(binder_configuration: BinderConfiguration | None = None) -> ClientFactory:
        """
        Get a factory for `binder_configuration`.

        `None` or a configuration equal to the default returns the default
        singleton. Anything else returns a *new* factory with its own cache;
        such factories are expensive and should be stored and reused. Factories
        are not deduplicated across calls.
        """
        if binder_configuration is None or binder_configuration == BinderConfiguration.default():
            return ClientFactory.default()
        return _ConfiguredClientFactory(binder_configuration)

    @property
    @abstractmethod
    def binder_configuration(self) -> BinderConfiguration:
        """The binder configuration associated with this factory."""

    @abstractmethod
    def create_client(self, contract_type: type[T], channel: CallInvoker) -> T:
        """Create a service client backed by `channel`."""

    @abstractmethod
    def get_client_type(self, contract_type: type) -> type:
        """Get the concrete client type that would provide this service."""

    def create_adapter(self, channel: CallInvoker, contract_type: type[T]) -> ContractClient[T]:
        """
        Create a deferred client handle.

        The adapter is resolved through this factory's cache when the handle
        is first narrowed with `as_contract()`.
        """
        _require_contract(contract_type)
        return ContractClient(channel, contract_type, self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(configuration={self.binder_configuration.fingerprint})"


class _ConfiguredClientFactory(ClientFactory):
    def __init__(self, binder_configuration: BinderConfiguration | None) -> None:
        self._binder_configuration = binder_configuration or BinderConfiguration.default()
        self._entries: dict[type, CacheEntry] = {}

    @property
    def binder_configuration(self) -> BinderConfiguration:
        return self._binder_configuration

    def _slow_get_entry(self, contract_type: type) -> CacheEntry:
        candidate = _build_entry(contract_type, self._binder_configuration)
        entry = self._entries.setdefault(contract_type, candidate)
        if entry is not candidate:
            get_logger().log_build(
                BuildLog(
                    contract=describe_type(contract_type),
                    configuration=self._binder_configuration.fingerprint,
                    concrete_type=describe_type(candidate.concrete_type),
                    outcome="discarded",
                )
            )
        return entry

    def _get_entry(self, contract_type: type) -> CacheEntry:
        entry = self._entries.get(contract_type)
        if entry is None:
            _require_contract(contract_type)
            entry = self._slow_get_entry(contract_type)
        return entry

    def create_client(self, contract_type, channel):
        return self._get_entry(contract_type).factory(channel)

    def get_client_type(self, contract_type):
        return self._get_entry(contract_type).concrete_type

    @property
    def cached_contracts(self) -> list[type]:
        """Contracts with a published entry in this factory."""
        return list(self._entries)


class _DefaultProxyCache:
    """
    Process-wide compute-once slots for the default configuration.

    One `OnceCell` per contract; the contract itself is the key. Entries are
    never evicted.
    """

    _cells: dict[type, OnceCell[CacheEntry]] = {}

    @classmethod
    def get(cls, contract_type: type) -> CacheEntry:
        cell = cls._cells.get(contract_type)
        if cell is None:
            _require_contract(contract_type)
            cell = cls._cells.setdefault(contract_type, OnceCell())
        return cell.get_or_init(
            lambda: _build_entry(contract_type, BinderConfiguration.default())
        )

    @classmethod
    def peek(cls, contract_type: type) -> CacheEntry | None:
        """Published entry for `contract_type`, or None; never builds."""
        cell = cls._cells.get(contract_type)
        return cell.get() if cell is not None else None


class _DefaultClientFactory(ClientFactory):
    INSTANCE: _DefaultClientFactory

    @property
    def binder_configuration(self) -> BinderConfiguration:
        return BinderConfiguration.default()

    def create_client(self, contract_type, channel):
        return _DefaultProxyCache.get(contract_type).factory(channel)

    def get_client_type(self, contract_type):
        return _DefaultProxyCache.get(contract_type).concrete_type


_DefaultClientFactory.INSTANCE = _DefaultClientFactory()


__all__ = ["CacheEntry", "ClientFactory"]
