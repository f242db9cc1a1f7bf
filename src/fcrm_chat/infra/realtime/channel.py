"""Realtime channel for fcrm_chat.

This module manages one Socket.IO connection to the chat backend: its
auth payload, private room membership, reconnection policy, and the
normalization of broadcast events into typed streams.
"""

import asyncio
import weakref
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import socketio

from fcrm_chat.config import ChatSettings
from fcrm_chat.exceptions import MalformedResponseError
from fcrm_chat.interfaces.realtime import SocketClientFactory, SocketClientInterface
from fcrm_chat.logging import get_logger, mask_key
from fcrm_chat.models.message import ChatMessage
from fcrm_chat.models.state import ConnectionState, RealtimeEventKind
from fcrm_chat.utils.events import EventStream

__all__ = [
    "BROADCAST_EVENTS",
    "RealtimeChannel",
    "RealtimeMessage",
    "default_client_factory",
    "room_name",
]

logger = get_logger(__name__)

# Colon-delimited names are current; backslash-delimited names are legacy
BROADCAST_EVENTS: dict[str, RealtimeEventKind] = {
    "App:Events:Chat:MessageEvent": RealtimeEventKind.CHAT_MESSAGE,
    "App\\Events\\Chat\\MessageEvent": RealtimeEventKind.CHAT_MESSAGE,
    "App:Events:Telegram:MessageEvent": RealtimeEventKind.EXTERNAL_MESSAGE,
    "App\\Events\\Telegram\\MessageEvent": RealtimeEventKind.EXTERNAL_MESSAGE,
    "App:Events:Chat:MessageEditedEvent": RealtimeEventKind.MESSAGE_EDITED,
    "App\\Events\\Chat\\MessageEditedEvent": RealtimeEventKind.MESSAGE_EDITED,
}

TRANSPORTS = ["websocket", "polling"]
SEEN_WINDOW = 100


def room_name(browser_key: str) -> str:
    """Private room for a browser key."""
    return f"private-chat_{browser_key}"


def default_client_factory(settings: ChatSettings) -> SocketClientFactory:
    """Build ``socketio.AsyncClient`` instances using the settings' reconnection policy."""

    def _factory() -> SocketClientInterface:
        return socketio.AsyncClient(  # type: ignore[return-value]
            reconnection=True,
            reconnection_attempts=settings.reconnection_attempts,
            reconnection_delay=settings.reconnection_delay_seconds,
            reconnection_delay_max=settings.reconnection_delay_seconds,
            randomization_factor=0,
            logger=False,
            engineio_logger=False,
        )

    return _factory


@dataclass(frozen=True)
class RealtimeMessage:
    """A chat message delivered over the realtime channel."""

    kind: RealtimeEventKind
    message: ChatMessage
    wire_name: str
    event: str | None = None


class RealtimeChannel:
    """One persistent Socket.IO connection and its room membership.

    State machine: disconnected -> connecting -> connected ->
    (disconnected | connecting). Each explicit ``connect`` builds a fresh
    client object and binds its listeners exactly once; events from a
    superseded client are ignored. Automatic reconnects after a drop are
    handled by the client and re-trigger the ``connect`` handler, which
    rejoins the private room of the current browser key.

    Example:
        channel = RealtimeChannel.from_settings(settings)
        channel.on_message.subscribe(lambda m: print(m.message.content))
        channel.connect(config.socket_url, config.socket_api_key, browser_key)
        await channel.update_browser_key(new_key)
        await channel.disconnect()
    """

    def __init__(
        self,
        client_factory: SocketClientFactory,
        reconnection_attempts: int = 5,
        reconnection_delay: float = 1.0,
        connect_timeout: float = 20.0,
    ) -> None:
        """Initialize the channel.

        Args:
            client_factory: Builds one fresh client per explicit connect
            reconnection_attempts: Retries after a failed first attempt
            reconnection_delay: Seconds between attempts
            connect_timeout: Seconds to wait for the handshake
        """
        self._client_factory = client_factory
        self._reconnection_attempts = reconnection_attempts
        self._reconnection_delay = reconnection_delay
        self._connect_timeout = connect_timeout

        self._client: SocketClientInterface | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._bound_clients: "weakref.WeakSet[Any]" = weakref.WeakSet()
        self._retiring: set[asyncio.Task[None]] = set()
        self._state = ConnectionState.DISCONNECTED
        self._url: str | None = None
        self._auth_key: str | None = None
        self._browser_key: str | None = None

        self._seen_ids: deque[int] = deque(maxlen=SEEN_WINDOW)

        self.on_state_change: EventStream[ConnectionState] = EventStream("connection_state")
        self.on_message: EventStream[RealtimeMessage] = EventStream("realtime_message")
        self.on_message_edited: EventStream[ChatMessage] = EventStream("message_edited")
        self.on_typing: EventStream[bool] = EventStream("typing")
        self.on_browser_key_update: EventStream[str] = EventStream("browser_key_update")
        self.on_auth_error: EventStream[Any] = EventStream("auth_error")

    @classmethod
    def from_settings(
        cls,
        settings: ChatSettings,
        client_factory: SocketClientFactory | None = None,
    ) -> "RealtimeChannel":
        return cls(
            client_factory or default_client_factory(settings),
            reconnection_attempts=settings.reconnection_attempts,
            reconnection_delay=settings.reconnection_delay_seconds,
            connect_timeout=settings.timeout_seconds,
        )

    # === State ===

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        # socketio flips client.connected only after the connect handler
        # returns, so the room join inside that handler relies on our state
        return self._state == ConnectionState.CONNECTED and self._client is not None

    @property
    def browser_key(self) -> str | None:
        return self._browser_key

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.debug("realtime_state_changed", previous=self._state.value, state=state.value)
        self._state = state
        self.on_state_change.emit(state)

    def _auth_payload(self) -> dict[str, Any]:
        # Evaluated on every handshake, so reconnects carry the current key
        auth: dict[str, Any] = {"key": self._auth_key}
        if self._browser_key is not None:
            auth["browser_key"] = self._browser_key
        return auth

    # === Connection lifecycle ===

    def connect(
        self,
        url: str,
        auth_key: str,
        browser_key: str | None = None,
    ) -> "asyncio.Task[None] | None":
        """Start connecting in the background.

        Never raises for connection failures; they show up as state
        changes. A no-op while already connecting or connected.

        Returns:
            The background connect task, or None if nothing was started
        """
        self._url = url
        self._auth_key = auth_key
        if browser_key is not None:
            self._browser_key = browser_key

        if self._state != ConnectionState.DISCONNECTED:
            logger.debug("realtime_connect_skipped", state=self._state.value)
            return None

        previous = self._client
        client = self._client_factory()
        self._client = client
        if previous is not None:
            # A dropped client may still be retrying on its own
            self._retire(previous)
        self._seen_ids.clear()
        self._bind_listeners(client)
        self._set_state(ConnectionState.CONNECTING)

        logger.info("realtime_connecting", url=url, browser_key=mask_key(self._browser_key))
        self._connect_task = asyncio.ensure_future(self._run_connect(client))
        return self._connect_task

    async def _run_connect(self, client: SocketClientInterface) -> None:
        attempts = 1 + max(0, self._reconnection_attempts)
        for attempt in range(1, attempts + 1):
            if client is not self._client:
                return
            try:
                await client.connect(
                    self._url,  # type: ignore[arg-type]
                    auth=self._auth_payload,  # type: ignore[arg-type]
                    transports=TRANSPORTS,
                    wait_timeout=self._connect_timeout,
                )
                return
            except Exception as e:
                # Bad URLs surface from the transport as arbitrary errors
                logger.warning(
                    "realtime_connect_failed",
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < attempts:
                    await asyncio.sleep(self._reconnection_delay)

        if client is self._client:
            logger.error("realtime_connect_gave_up", attempts=attempts)
            self._client = None
            self._retire(client)
            self._set_state(ConnectionState.DISCONNECTED)

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting.

        Idempotent. The browser key is remembered for the next ``connect``.
        """
        client = self._client
        task = self._connect_task
        self._client = None
        self._connect_task = None

        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        if client is not None:
            try:
                await client.shutdown()
            except Exception as e:
                logger.warning("realtime_disconnect_error", error=str(e))
            logger.info("realtime_disconnected")

        self._set_state(ConnectionState.DISCONNECTED)

    async def close(self) -> None:
        """Disconnect and drop every stream listener."""
        await self.disconnect()
        for stream in (
            self.on_state_change,
            self.on_message,
            self.on_message_edited,
            self.on_typing,
            self.on_browser_key_update,
            self.on_auth_error,
        ):
            stream.close()

    # === Listener binding ===

    def _bind_listeners(self, client: SocketClientInterface) -> None:
        """Bind every wire event on ``client`` exactly once."""
        if client in self._bound_clients:
            return
        self._bound_clients.add(client)

        handlers: dict[str, Callable[..., Awaitable[None]]] = {
            "connect": self._on_connect,
            "connect_error": self._on_connect_error,
            "disconnect": self._on_disconnect,
            "typing": self._on_typing,
            "user-joined": self._on_presence,
            "user-left": self._on_presence,
            "auth-error": self._on_auth_error,
            "browser-key-updated": self._on_browser_key_updated,
        }
        for event, handler in handlers.items():
            client.on(event, self._guard(client, event, handler))

        for wire_name, kind in BROADCAST_EVENTS.items():
            client.on(wire_name, self._guard(client, wire_name, self._broadcast_handler(kind, wire_name)))

    def _guard(
        self,
        client: SocketClientInterface,
        event: str,
        handler: Callable[..., Awaitable[None]],
    ) -> Callable[..., Awaitable[None]]:
        async def _handler(*args: Any) -> None:
            if client is not self._client:
                logger.debug("realtime_stale_event_ignored", wire_event=event)
                if event == "connect":
                    self._retire(client)
                return
            await handler(*args)

        return _handler

    def _retire(self, client: SocketClientInterface) -> None:
        async def _close() -> None:
            try:
                await client.shutdown()
            except Exception as e:
                logger.debug("realtime_retire_failed", error=str(e))

        task = asyncio.ensure_future(_close())
        self._retiring.add(task)
        task.add_done_callback(self._retiring.discard)

    def _broadcast_handler(
        self,
        kind: RealtimeEventKind,
        wire_name: str,
    ) -> Callable[..., Awaitable[None]]:
        async def _handler(data: Any = None, *_: Any) -> None:
            await self._on_broadcast(kind, wire_name, data)

        return _handler

    # === Event handlers ===

    async def _on_connect(self, *_: Any) -> None:
        logger.info("realtime_connected")
        self._set_state(ConnectionState.CONNECTED)
        if self._browser_key is not None:
            await self._join(self._browser_key)

    async def _on_connect_error(self, data: Any = None, *_: Any) -> None:
        logger.warning("realtime_connect_error", error=str(data))

    async def _on_disconnect(self, *args: Any) -> None:
        reason = args[0] if args else None
        logger.info("realtime_connection_lost", reason=str(reason) if reason else None)
        self._set_state(ConnectionState.DISCONNECTED)

    async def _on_typing(self, data: Any = None, *_: Any) -> None:
        is_typing = isinstance(data, dict) and data.get("isTyping") is True
        self.on_typing.emit(is_typing)

    async def _on_presence(self, data: Any = None, *_: Any) -> None:
        logger.debug("realtime_presence", data=data)

    async def _on_auth_error(self, data: Any = None, *_: Any) -> None:
        logger.warning("realtime_auth_error", error=str(data))
        self.on_auth_error.emit(data)

    async def _on_browser_key_updated(self, data: Any = None, *_: Any) -> None:
        if not isinstance(data, dict) or data.get("browser_key") is None:
            logger.warning("realtime_browser_key_update_invalid")
            return
        new_key = str(data["browser_key"])
        logger.info("realtime_browser_key_rotated", browser_key=mask_key(new_key))
        # The owner applies it through update_browser_key so the old room is left
        self.on_browser_key_update.emit(new_key)

    async def _on_broadcast(self, kind: RealtimeEventKind, wire_name: str, data: Any) -> None:
        payload = data if isinstance(data, dict) else {"message": data}
        raw = payload["message"] if isinstance(payload.get("message"), dict) else payload
        try:
            message = ChatMessage.from_payload(raw)
        except MalformedResponseError as e:
            logger.warning("realtime_message_invalid", wire_event=wire_name, error=str(e))
            return

        if kind == RealtimeEventKind.MESSAGE_EDITED:
            self.on_message_edited.emit(message)
            return

        if message.id in self._seen_ids:
            logger.debug("realtime_duplicate_dropped", wire_event=wire_name, message_id=message.id)
            return
        self._seen_ids.append(message.id)

        event = payload.get("event")
        self.on_message.emit(
            RealtimeMessage(
                kind=kind,
                message=message,
                wire_name=wire_name,
                event=str(event) if event is not None else None,
            )
        )

    # === Rooms and outgoing events ===

    async def _join(self, browser_key: str) -> None:
        await self.subscribe(room_name(browser_key))

    async def _leave(self, browser_key: str) -> None:
        await self.unsubscribe(room_name(browser_key))

    async def subscribe(self, channel: str) -> None:
        """Join a room. Dropped when not connected."""
        if not self.is_connected:
            logger.debug("realtime_join_skipped", room=channel, reason="not connected")
            return
        await self._client.emit("join", channel)  # type: ignore[union-attr]
        logger.debug("realtime_room_joined", room=channel)

    async def unsubscribe(self, channel: str) -> None:
        """Leave a room. Dropped when not connected."""
        if not self.is_connected:
            return
        await self._client.emit("leave", channel)  # type: ignore[union-attr]
        logger.debug("realtime_room_left", room=channel)

    async def update_browser_key(self, browser_key: str | None) -> None:
        """Move room membership to a new browser key.

        Same key: no-op. Otherwise leaves the old room (if connected),
        adopts the new key and joins its room (if connected). Safe while
        disconnected; ``None`` forgets the key.
        """
        if browser_key == self._browser_key:
            return
        previous = self._browser_key
        if previous is not None and self.is_connected:
            await self._leave(previous)
        self._browser_key = browser_key
        if browser_key is not None and self.is_connected:
            await self._join(browser_key)

    async def send_typing(self, browser_key: str, is_typing: bool) -> None:
        """Fire-and-forget typing indicator; silently dropped when disconnected."""
        if not self.is_connected:
            return
        await self._client.emit(  # type: ignore[union-attr]
            "typing",
            {"browser_key": browser_key, "isTyping": is_typing},
        )
