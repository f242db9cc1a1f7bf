"""Session persistence in Redis.

Used when ``FCRM_CHAT_STORAGE_BACKEND=redis``. The store never raises
on Redis trouble: an unreachable server means a session that does not
survive a restart, which the chat flow already handles as "not
registered yet".
"""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from fcrm_chat.config import RedisSettings
from fcrm_chat.interfaces.storage import KeyValueStoreInterface
from fcrm_chat.logging import get_logger
from fcrm_chat.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from redis.asyncio import Redis

__all__ = [
    "RedisKeyValueStore",
]

logger = get_logger(__name__)

load_redis_class = lazy_import("redis.asyncio", "Redis", extra="redis")

T = TypeVar("T")


class RedisKeyValueStore(KeyValueStoreInterface):
    """Key-value store on top of ``redis.asyncio``.

    The connection is opened on the first read or write. Every key is
    stored as ``prefix + key``.

    Example:
        async with RedisKeyValueStore(settings.redis, prefix="chat:") as store:
            await store.set("fcrm_chat_browser_app", "browser-key")
    """

    def __init__(
        self,
        settings: RedisSettings,
        prefix: str = "",
        redis: "Redis | None" = None,  # type: ignore[type-arg]
    ) -> None:
        self._settings = settings
        self._prefix = prefix
        self._redis = redis
        self._connected = redis is not None

    @property
    def is_enabled(self) -> bool:
        return bool(self._settings.enabled and self._settings.url)

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """Open and ping the connection.

        Returns:
            Whether the store can serve commands
        """
        if self._redis is not None:
            return self._connected
        if not self.is_enabled:
            logger.info("session_redis_skipped", reason="no redis url configured")
            return False

        # A missing redis extra is a setup error, not an outage
        redis_class = load_redis_class()
        client = redis_class.from_url(self._settings.url, decode_responses=True)  # type: ignore[attr-defined]
        try:
            await client.ping()
        except Exception as e:
            logger.warning(
                "session_redis_unreachable",
                url=self._settings.url,
                error=str(e),
            )
            await client.aclose()
            return False

        self._redis = client
        self._connected = True
        logger.info("session_redis_connected", url=self._settings.url)
        return True

    async def close(self) -> None:
        if self._redis is None:
            return
        client, self._redis = self._redis, None
        self._connected = False
        await client.aclose()
        logger.info("session_redis_closed")

    async def _run(
        self,
        op: str,
        key: str,
        command: Callable[["Redis", str], Awaitable[T]],  # type: ignore[type-arg]
    ) -> T | None:
        if not self._connected and not await self.connect():
            logger.debug("session_redis_command_skipped", op=op, key=key)
            return None
        try:
            return await command(self._redis, self._prefix + key)  # type: ignore[arg-type]
        except Exception as e:
            logger.warning("session_redis_command_failed", op=op, key=key, error=str(e))
            return None

    async def get(self, key: str) -> str | None:
        return await self._run("get", key, lambda r, k: r.get(k))

    async def set(self, key: str, value: str) -> None:
        await self._run("set", key, lambda r, k: r.set(k, value))

    async def delete(self, key: str) -> None:
        await self._run("delete", key, lambda r, k: r.delete(k))

    async def __aenter__(self) -> "RedisKeyValueStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
