"""In-process key-value store for fcrm_chat."""

from fcrm_chat.interfaces.storage import KeyValueStoreInterface

__all__ = [
    "InMemoryKeyValueStore",
]


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Key-value store held in a dict for the process lifetime.

    Default backend; sessions do not survive a restart.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current contents."""
        return dict(self._data)
