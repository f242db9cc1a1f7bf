"""JSON file key-value store for fcrm_chat.

Keeps all entries in a single JSON document, the way a mobile app keeps
shared preferences. File I/O runs in a worker thread.
"""

import asyncio
import json
from pathlib import Path

from fcrm_chat.interfaces.storage import KeyValueStoreInterface
from fcrm_chat.logging import get_logger

__all__ = [
    "JsonFileKeyValueStore",
]

logger = get_logger(__name__)


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """Key-value store persisted to a JSON file.

    A missing or unreadable file reads as empty. Writes replace the
    file atomically through a temporary sibling.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("session_file_unreadable", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("session_file_invalid", path=str(self._path))
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self._path)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write, data)
