"""Key-value storage interface for fcrm_chat.

This module defines the Protocol for the local persistence the SDK
uses to remember a browser key and user profile between launches.
"""

from typing import Protocol, runtime_checkable

__all__ = [
    "KeyValueStoreInterface",
]


@runtime_checkable
class KeyValueStoreInterface(Protocol):
    """Contract for durable string key-value storage.

    Implementations may involve I/O, so every operation is async.
    A missing key reads as None; callers never branch on other failures.
    """

    async def get(self, key: str) -> str | None:
        """Get a stored value.

        Args:
            key: Storage key

        Returns:
            Stored string, or None if absent
        """
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Args:
            key: Storage key
            value: String value to store
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is a no-op.

        Args:
            key: Storage key
        """
        ...
