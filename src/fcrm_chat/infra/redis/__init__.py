"""Redis infrastructure for fcrm_chat (optional)."""

from fcrm_chat.infra.redis.client import RedisKeyValueStore

__all__ = ["RedisKeyValueStore"]
