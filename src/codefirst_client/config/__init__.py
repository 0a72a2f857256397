"""
Configuration system for codefirst-client.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
"""

from .base import LogFormat, LogLevel, MarshallerName
from .binder import BinderSettings
from .logging import LoggingConfig
from .settings import Settings, configure, get_settings, load_env

__all__ = [
    # Types
    "MarshallerName",
    "LogLevel",
    "LogFormat",
    # Section configs
    "BinderSettings",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "load_env",
]
