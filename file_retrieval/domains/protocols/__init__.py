"""
Protocol adapters: one contract, one implementation per transport.
"""
from .base import ProtocolAdapter
from .factory import ProtocolAdapterFactory
from .memory_adapter import InMemoryProtocolAdapter
from .secrets import EnvironmentSecretResolver, InMemorySecretResolver, SecretResolver

__all__ = [
    "ProtocolAdapter",
    "ProtocolAdapterFactory",
    "InMemoryProtocolAdapter",
    "SecretResolver",
    "EnvironmentSecretResolver",
    "InMemorySecretResolver",
]
