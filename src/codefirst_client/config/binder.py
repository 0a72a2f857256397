"""
Binder configuration settings.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..binder import BinderConfiguration, JsonMarshallerFactory, NamingPolicy
from .base import MarshallerName


@dataclass
class BinderSettings:
    """
    Wire-binding rules as plain settings.

    Keeping every default yields a configuration equal to
    `BinderConfiguration.default()`, which routes to the default factory.
    """

    package: str | None = None
    strip_interface_prefix: bool = True
    strip_async_suffix: bool = True
    pascal_case: bool = False
    marshaller: MarshallerName = "json"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.marshaller not in ("json", "stable_json"):
            raise ValueError(f"Invalid marshaller: {self.marshaller}")
        if self.package is not None and not self.package.strip():
            raise ValueError("package cannot be blank")

    def to_binder_configuration(self) -> BinderConfiguration:
        return BinderConfiguration(
            naming=NamingPolicy(
                package=self.package,
                strip_interface_prefix=self.strip_interface_prefix,
                strip_async_suffix=self.strip_async_suffix,
                pascal_case=self.pascal_case,
            ),
            marshallers=JsonMarshallerFactory(stable=self.marshaller == "stable_json"),
        )


__all__ = ["BinderSettings"]
