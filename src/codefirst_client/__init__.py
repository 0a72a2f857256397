"""
Top-level package for codefirst-client.

Turns plain Python service contracts into clients that dispatch every call
over a transport-agnostic channel, with adapters generated once per
(contract, binder configuration) and cached safely across threads.
"""

from .binder import BinderConfiguration, JsonMarshallerFactory, Marshaller, MarshallerFactory, NamingPolicy
from .channel import CallInvoker, LocalChannel
from .client import CodeFirstClient, ContractClient
from .contracts import CallOptions, MethodDescriptor, MethodType, operation, service
from .errors import (
    ChannelError,
    CodeFirstError,
    ContractError,
    MarshallingError,
    MethodNotFoundError,
    UnsupportedSignatureError,
)
from .factory import CacheEntry, ClientFactory
from .mapping import describe_contract, map_contract

__all__ = [
    "ClientFactory",
    "CacheEntry",
    "CodeFirstClient",
    "ContractClient",
    "BinderConfiguration",
    "NamingPolicy",
    "Marshaller",
    "MarshallerFactory",
    "JsonMarshallerFactory",
    "CallInvoker",
    "LocalChannel",
    "CallOptions",
    "MethodDescriptor",
    "MethodType",
    "service",
    "operation",
    "describe_contract",
    "map_contract",
    "CodeFirstError",
    "ContractError",
    "UnsupportedSignatureError",
    "MarshallingError",
    "ChannelError",
    "MethodNotFoundError",
]
