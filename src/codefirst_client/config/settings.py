"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from .binder import BinderSettings
from .logging import LoggingConfig

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class Settings:
    """
    Master configuration for codefirst-client.

    Aggregates the binder rules and logging options into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    binder: BinderSettings = field(default_factory=BinderSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "CODEFIRST_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            CODEFIRST_SERVICE_PACKAGE=demo
            CODEFIRST_PASCAL_CASE=true
            CODEFIRST_LOG_LEVEL=DEBUG
        """
        settings = cls()

        # Binder settings
        binder: dict[str, Any] = {}
        if package := os.getenv(f"{prefix}SERVICE_PACKAGE"):
            binder["package"] = package
        if strip_prefix := os.getenv(f"{prefix}STRIP_INTERFACE_PREFIX"):
            binder["strip_interface_prefix"] = _env_flag(strip_prefix)
        if strip_async := os.getenv(f"{prefix}STRIP_ASYNC_SUFFIX"):
            binder["strip_async_suffix"] = _env_flag(strip_async)
        if pascal_case := os.getenv(f"{prefix}PASCAL_CASE"):
            binder["pascal_case"] = _env_flag(pascal_case)
        if marshaller := os.getenv(f"{prefix}MARSHALLER"):
            binder["marshaller"] = marshaller.lower()
        if binder:
            # replace() re-runs __post_init__ validation
            settings.binder = dataclasses.replace(settings.binder, **binder)

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging = dataclasses.replace(settings.logging, level=level.upper())
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging = dataclasses.replace(settings.logging, format=log_format.lower())

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError("PyYAML is required for YAML config files: pip install pyyaml") from exc
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary, validated against the configuration schema.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        return cls(
            binder=BinderSettings(**data.get("binder", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""
        return dataclasses.asdict(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific sections (``binder=...``, ``logging=...``)

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "load_env"]
