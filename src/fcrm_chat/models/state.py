"""Lifecycle state enums for fcrm_chat."""

from enum import StrEnum

__all__ = [
    "ConnectionState",
    "RealtimeEventKind",
    "SessionState",
]


class ConnectionState(StrEnum):
    """Realtime connection state. Not persisted."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SessionState(StrEnum):
    """ChatSession lifecycle state."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class RealtimeEventKind(StrEnum):
    """Normalized realtime broadcast kinds.

    Each kind is delivered under a colon-delimited and a legacy
    backslash-delimited wire name.
    """

    CHAT_MESSAGE = "chat_message"
    EXTERNAL_MESSAGE = "external_message"
    MESSAGE_EDITED = "message_edited"
