"""fcrm_chat - Async Python client SDK for the FCRM mobile chat backend.

This package provides tools for:
- Registering a device as a chat participant and resuming it later
- Sending, editing and uploading messages over signed REST calls
- Receiving live messages, edits and typing indicators over Socket.IO
- Persisting the session locally (memory, JSON file or Redis)

Example usage:
    from fcrm_chat import ChatSession, ChatSettings

    # Simple usage - config loaded from .env automatically
    async with ChatSession() as chat:
        chat.on_message.subscribe(lambda m: print(m.sender_name, m.content))
        history = await chat.load_history_for_resume()
        if not await chat.is_registered():
            await chat.register({"name": "John Doe", "phone": "+1234567890"})
        await chat.send_message("Hello!")
"""

__version__ = "0.1.0"

from fcrm_chat.config import ChatSettings, RedisSettings, StorageSettings
from fcrm_chat.exceptions import (
    ChatApiError,
    ChatError,
    ChatNetworkError,
    ChatTimeoutError,
    ConfigurationInactiveError,
    MalformedResponseError,
    MissingRequiredFieldError,
    NotInitializedError,
    NotRegisteredError,
    UploadCancelledError,
)
from fcrm_chat.infra.http.gateway import RestGateway
from fcrm_chat.infra.realtime.channel import RealtimeChannel, RealtimeMessage
from fcrm_chat.infra.storage import InMemoryKeyValueStore, JsonFileKeyValueStore
from fcrm_chat.interfaces.realtime import SocketClientInterface
from fcrm_chat.interfaces.storage import KeyValueStoreInterface
from fcrm_chat.models import (
    BrowserUpdateResult,
    ChatMessage,
    ConnectionState,
    EditMessageResult,
    PaginatedHistoryPage,
    RegistrationResult,
    RemoteAppConfig,
    SendMessageResult,
    SenderType,
    SessionState,
    UploadResult,
)
from fcrm_chat.services.session_store import SessionStore
from fcrm_chat.session import ChatSession
from fcrm_chat.utils.cancellation import CancelToken

__all__ = [  # noqa: RUF022
    # Orchestrator
    "ChatSession",
    # Configuration
    "ChatSettings",
    "RedisSettings",
    "StorageSettings",
    # Components
    "RestGateway",
    "RealtimeChannel",
    "RealtimeMessage",
    "SessionStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "CancelToken",
    # Models
    "BrowserUpdateResult",
    "ChatMessage",
    "ConnectionState",
    "EditMessageResult",
    "PaginatedHistoryPage",
    "RegistrationResult",
    "RemoteAppConfig",
    "SendMessageResult",
    "SenderType",
    "SessionState",
    "UploadResult",
    # Interfaces
    "KeyValueStoreInterface",
    "SocketClientInterface",
    # Errors
    "ChatError",
    "ChatApiError",
    "ChatNetworkError",
    "ChatTimeoutError",
    "ConfigurationInactiveError",
    "MalformedResponseError",
    "MissingRequiredFieldError",
    "NotInitializedError",
    "NotRegisteredError",
    "UploadCancelledError",
]
