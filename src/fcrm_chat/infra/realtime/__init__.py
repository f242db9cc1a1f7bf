"""Realtime (Socket.IO) infrastructure for fcrm_chat."""

from fcrm_chat.infra.realtime.channel import (
    BROADCAST_EVENTS,
    RealtimeChannel,
    RealtimeMessage,
    default_client_factory,
    room_name,
)

__all__ = [
    "BROADCAST_EVENTS",
    "RealtimeChannel",
    "RealtimeMessage",
    "default_client_factory",
    "room_name",
]
