"""Public models for fcrm_chat.

This module exports all public value objects.
"""

from fcrm_chat.models.app_config import RemoteAppConfig
from fcrm_chat.models.history import PaginatedHistoryPage
from fcrm_chat.models.message import ChatMessage, SenderType
from fcrm_chat.models.responses import (
    BrowserUpdateResult,
    EditedMessage,
    EditMessageResult,
    RegistrationResult,
    SendMessageResult,
    UploadResult,
    UserDataUpdateResult,
)
from fcrm_chat.models.state import ConnectionState, RealtimeEventKind, SessionState

__all__ = [
    "BrowserUpdateResult",
    "ChatMessage",
    "ConnectionState",
    "EditMessageResult",
    "EditedMessage",
    "PaginatedHistoryPage",
    "RealtimeEventKind",
    "RegistrationResult",
    "RemoteAppConfig",
    "SendMessageResult",
    "SenderType",
    "SessionState",
    "UploadResult",
    "UserDataUpdateResult",
]
