"""Configuration management for fcrm_chat.

This module provides typed configuration classes using pydantic-settings.
Configuration is loaded from environment variables with optional .env file support.
"""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from fcrm_chat.utils.signing import generate_signature

__all__ = [
    "ChatSettings",
    "LoggingSettings",
    "RedisSettings",
    "StorageSettings",
]


class RedisSettings(BaseSettings):
    """Redis connection settings (optional).

    Only used when the storage backend is "redis".
    """

    model_config = SettingsConfigDict(
        env_prefix="FCRM_CHAT_REDIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str | None = None
    enabled: bool = True  # Can be explicitly disabled


class LoggingSettings(BaseSettings):
    """SDK log output settings."""

    model_config = SettingsConfigDict(
        env_prefix="FCRM_CHAT_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    json_output: bool = False
    timestamps: bool = True


class StorageSettings(BaseSettings):
    """Local session persistence settings."""

    model_config = SettingsConfigDict(
        env_prefix="FCRM_CHAT_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: Literal["memory", "file", "redis"] = "memory"
    file_path: str = ".fcrm_chat_session.json"


class ChatSettings(BaseSettings):
    """Main SDK configuration.

    Example usage:
        settings = ChatSettings(
            base_url="https://api.example.com",
            company_token="tenant-token",
            app_key="app-key",
            app_secret="app-secret",
        )
        print(settings.api_url)
    """

    model_config = SettingsConfigDict(
        env_prefix="FCRM_CHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend identification
    base_url: str = "http://localhost:8000"
    company_token: str = ""
    app_key: str = ""
    app_secret: SecretStr = SecretStr("")

    # Overrides the socket URL announced by the remote config
    socket_url: str | None = None

    # REST
    connection_timeout_ms: int = 20000
    upload_chunk_size: int = 64 * 1024
    default_per_page: int = 20

    # Realtime reconnection policy
    reconnection_attempts: int = 5
    reconnection_delay_ms: int = 1000

    # Component settings (nested)
    storage: StorageSettings = StorageSettings()
    redis: RedisSettings = RedisSettings()

    @property
    def api_url(self) -> str:
        """REST base URL scoped to the tenant."""
        return f"{self.base_url.rstrip('/')}/api/v1/mobile-chat/{self.company_token}"

    @property
    def signature(self) -> str:
        """HMAC signature of the app key, sent with every request."""
        return generate_signature(self.app_key, self.app_secret.get_secret_value())

    @property
    def timeout_seconds(self) -> float:
        return self.connection_timeout_ms / 1000

    @property
    def reconnection_delay_seconds(self) -> float:
        return self.reconnection_delay_ms / 1000
