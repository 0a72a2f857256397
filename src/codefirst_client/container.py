"""
Application container.

Client factories for non-default binder rules are expensive to create and
are meant to be kept. The container owns that decision: it builds the
factory for the configured rules once and hands the same instance out for
the rest of its life.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional, TypeVar

from .channel import CallInvoker
from .client import ContractClient
from .config import Settings, get_settings
from .factory import ClientFactory
from .logging import configure_logging

T = TypeVar("T")


@dataclass
class Container:
    """
    Application-level dependency container.

    Example:
        ```python
        container = Container.from_config(settings)

        factory = container.client_factory()
        greeter = container.client(Greeter, channel)
        ```
    """

    settings: Settings = field(default_factory=Settings)

    _factory: Optional[ClientFactory] = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def from_config(cls, settings: Optional[Settings] = None) -> "Container":
        """
        Create a container from Settings and apply its logging section.

        Args:
            settings: Settings object (uses global if not provided)
        """
        settings = settings or get_settings()
        configure_logging(
            level=settings.logging.level,
            json_output=settings.logging.format == "json",
        )
        return cls(settings=settings)

    @classmethod
    def default(cls) -> "Container":
        """Create a container with default configuration."""
        return cls.from_config()

    def client_factory(self) -> ClientFactory:
        """Get or create the factory for the configured binder rules."""
        if self._factory is None:
            with self._lock:
                if self._factory is None:
                    configuration = self.settings.binder.to_binder_configuration()
                    self._factory = ClientFactory.create(configuration)
        return self._factory

    def client(self, contract_type: type[T], channel: CallInvoker) -> T:
        """Create a client for `contract_type` over `channel`."""
        return self.client_factory().create_client(contract_type, channel)

    def adapter(self, contract_type: type[T], channel: CallInvoker) -> ContractClient[T]:
        """Create a deferred client handle for `contract_type`."""
        return self.client_factory().create_adapter(channel, contract_type)


# =============================================================================
# Global Container
# =============================================================================

_default_container: Optional[Container] = None


def get_container() -> Container:
    """Get the global container."""
    global _default_container
    if _default_container is None:
        _default_container = Container.default()
    return _default_container


def set_container(container: Optional[Container]) -> None:
    """Set (or clear) the global container."""
    global _default_container
    _default_container = container


__all__ = [
    "Container",
    "get_container",
    "set_container",
]
