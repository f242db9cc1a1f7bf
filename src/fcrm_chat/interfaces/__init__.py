"""Interface contracts for fcrm_chat.

This module exports all Protocol-based interfaces for dependency injection.
"""

from fcrm_chat.interfaces.realtime import SocketClientFactory, SocketClientInterface
from fcrm_chat.interfaces.storage import KeyValueStoreInterface

__all__ = [
    "KeyValueStoreInterface",
    "SocketClientFactory",
    "SocketClientInterface",
]
