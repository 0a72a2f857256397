"""
Error taxonomy for codefirst-client.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Structured context for debugging
- Contract, marshalling, channel and configuration error families
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the client factory."""

    # Contract errors (1xxx)
    INVALID_CONTRACT = "ERR_1001"
    UNSUPPORTED_SIGNATURE = "ERR_1002"
    DUPLICATE_OPERATION = "ERR_1003"

    # Marshalling errors (2xxx)
    MARSHALLING_ERROR = "ERR_2000"

    # Channel errors (3xxx)
    CHANNEL_ERROR = "ERR_3000"
    METHOD_NOT_FOUND = "ERR_3001"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    INVALID_CONFIG = "ERR_6002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    contract: str | None = None
    operation: str | None = None
    method: str | None = None
    configuration: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract": self.contract,
            "operation": self.operation,
            "method": self.method,
            "configuration": self.configuration,
            **self.extra,
        }


class CodeFirstError(Exception):
    """
    Base exception for all codefirst-client errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.contract:
            parts.append(f"(contract={self.context.contract})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Contract Errors
# =============================================================================


class ContractError(CodeFirstError):
    """A service contract cannot be mapped to wire operations."""

    code = ErrorCode.INVALID_CONTRACT

    def __init__(
        self,
        message: str = "Invalid service contract",
        *,
        contract: type | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        if contract is not None and self.context.contract is None:
            self.context.contract = getattr(contract, "__qualname__", repr(contract))


class UnsupportedSignatureError(ContractError):
    """A contract member has a shape that cannot be dispatched over a channel."""

    code = ErrorCode.UNSUPPORTED_SIGNATURE

    def __init__(
        self,
        message: str = "Unsupported operation signature",
        *,
        member: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.member = member
        if member:
            self.context.operation = member


class DuplicateOperationError(ContractError):
    """Two contract members resolve to the same wire name."""

    code = ErrorCode.DUPLICATE_OPERATION


# =============================================================================
# Marshalling Errors
# =============================================================================


class MarshallingError(CodeFirstError):
    """A payload could not be serialized or deserialized."""

    code = ErrorCode.MARSHALLING_ERROR


# =============================================================================
# Channel Errors
# =============================================================================


class ChannelError(CodeFirstError):
    """Base class for errors raised by call channels."""

    code = ErrorCode.CHANNEL_ERROR


class MethodNotFoundError(ChannelError):
    """No handler is bound for the requested wire method."""

    code = ErrorCode.METHOD_NOT_FOUND

    def __init__(
        self,
        message: str = "Method not found",
        *,
        method: str | None = None,
        **kwargs,
    ):
        if method:
            message = f"Method not found: {method}"
        super().__init__(message, **kwargs)
        self.context.method = method


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(CodeFirstError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class InvalidConfigError(ConfigError):
    """Configuration is invalid."""

    code = ErrorCode.INVALID_CONFIG


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "CodeFirstError",
    # Contract errors
    "ContractError",
    "UnsupportedSignatureError",
    "DuplicateOperationError",
    # Marshalling errors
    "MarshallingError",
    # Channel errors
    "ChannelError",
    "MethodNotFoundError",
    # Config errors
    "ConfigError",
    "InvalidConfigError",
]
