"""Key-value store backends for fcrm_chat."""

from fcrm_chat.config import ChatSettings
from fcrm_chat.infra.storage.json_file import JsonFileKeyValueStore
from fcrm_chat.infra.storage.memory import InMemoryKeyValueStore
from fcrm_chat.interfaces.storage import KeyValueStoreInterface

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "build_key_value_store",
]


def build_key_value_store(settings: ChatSettings) -> KeyValueStoreInterface:
    """Create the store selected by ``settings.storage.backend``."""
    backend = settings.storage.backend
    if backend == "file":
        return JsonFileKeyValueStore(settings.storage.file_path)
    if backend == "redis":
        from fcrm_chat.infra.redis.client import RedisKeyValueStore

        return RedisKeyValueStore(settings.redis)
    return InMemoryKeyValueStore()
