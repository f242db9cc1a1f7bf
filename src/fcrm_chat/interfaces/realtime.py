"""Realtime socket client interface for fcrm_chat.

This module defines the Protocol for the subset of a Socket.IO client
that RealtimeChannel drives. ``socketio.AsyncClient`` satisfies it.
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "AuthPayload",
    "SocketClientFactory",
    "SocketClientInterface",
]

# A dict, or a callable evaluated on every handshake (including reconnects)
AuthPayload = dict[str, Any] | Callable[[], dict[str, Any]]


@runtime_checkable
class SocketClientInterface(Protocol):
    """Contract for one physical duplex connection.

    A client object is bound to its listeners once and is never
    reused after an explicit disconnect.
    """

    def on(self, event: str, handler: Callable[..., Any] | None = None) -> Any:
        """Bind a handler to a wire event name."""
        ...

    async def connect(
        self,
        url: str,
        *,
        auth: AuthPayload | None = None,
        transports: list[str] | None = None,
        wait_timeout: float = 1,
    ) -> None:
        """Open the connection and complete the handshake.

        Raises:
            socketio.exceptions.ConnectionError: If the handshake fails
        """
        ...

    async def emit(self, event: str, data: Any = None) -> None:
        """Send an event to the server."""
        ...

    async def shutdown(self) -> None:
        """Close the connection and abort any automatic reconnect loop.

        ``socketio.AsyncClient.disconnect`` does not stop a reconnect loop
        that is already running; this does.
        """
        ...


SocketClientFactory = Callable[[], SocketClientInterface]
