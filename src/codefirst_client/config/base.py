"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

MarshallerName = Literal["json", "stable_json"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]


__all__ = ["MarshallerName", "LogLevel", "LogFormat"]
