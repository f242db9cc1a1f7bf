"""ChatSession orchestrator for fcrm_chat.

This module provides the main entry point of the SDK. ChatSession owns
the current browser key, keeps the local session store and the realtime
channel aligned with it, and exposes the public chat operations.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any, BinaryIO

from fcrm_chat.config import ChatSettings
from fcrm_chat.exceptions import (
    ConfigurationInactiveError,
    MissingRequiredFieldError,
    NotInitializedError,
    NotRegisteredError,
)
from fcrm_chat.infra.http.gateway import ProgressCallback, RestGateway
from fcrm_chat.infra.realtime.channel import RealtimeChannel, RealtimeMessage
from fcrm_chat.infra.storage import build_key_value_store
from fcrm_chat.interfaces.storage import KeyValueStoreInterface
from fcrm_chat.logging import get_logger, mask_key
from fcrm_chat.models.app_config import RemoteAppConfig
from fcrm_chat.models.history import PaginatedHistoryPage
from fcrm_chat.models.message import ChatMessage
from fcrm_chat.models.responses import (
    BrowserUpdateResult,
    EditMessageResult,
    RegistrationResult,
    SendMessageResult,
    UploadResult,
)
from fcrm_chat.models.state import ConnectionState, SessionState
from fcrm_chat.services.session_store import SessionStore, UserProfile
from fcrm_chat.utils.cancellation import CancelToken
from fcrm_chat.utils.events import EventStream

__all__ = ["ChatSession"]

logger = get_logger(__name__)


class ChatSession:
    """Main orchestrator for a chat participant session.

    Settings are loaded from the environment when not given. Collaborators
    can be injected for testing or custom backends.

    Realtime messages are republished verbatim on ``on_message``; they are
    not reconciled against history fetched over REST, so a message can
    show up both live and in a later ``fetch_history`` page.

    Example:
        async with ChatSession(settings) as chat:
            chat.on_message.subscribe(lambda m: print(m.content))
            if not await chat.is_registered():
                await chat.register({"name": "John Doe", "phone": "+1234567890"})
            await chat.send_message("Hello!")
    """

    def __init__(
        self,
        settings: ChatSettings | None = None,
        *,
        store: KeyValueStoreInterface | None = None,
        gateway: RestGateway | None = None,
        channel: RealtimeChannel | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            settings: SDK settings (loaded from .env when omitted)
            store: Key-value backend (defaults to ``settings.storage.backend``)
            gateway: REST gateway
            channel: Realtime channel
        """
        self._settings = settings or ChatSettings()

        self._kv_store = store or build_key_value_store(self._settings)
        self._store = SessionStore(self._kv_store, self._settings.app_key)
        self._gateway = gateway or RestGateway(self._settings)
        self._channel = channel or RealtimeChannel.from_settings(self._settings)

        self._state = SessionState.UNINITIALIZED
        self._init_task: asyncio.Task[None] | None = None
        self._remote_config: RemoteAppConfig | None = None
        self._browser_key: str | None = None
        self._chat_id: int | None = None

        # Serializes every browser key / profile mutation
        self._identity_lock = asyncio.Lock()

        self.on_message: EventStream[ChatMessage] = EventStream("message")
        self.on_message_edited: EventStream[ChatMessage] = EventStream("message_edited")
        self.on_connection_change: EventStream[ConnectionState] = EventStream("connection")
        self.on_typing: EventStream[bool] = EventStream("typing")
        self.on_ready: EventStream[bool] = EventStream("ready")

        # Subscribed once for the session lifetime
        self._unsubscribers = [
            self._channel.on_message.subscribe(self._forward_message),
            self._channel.on_message_edited.subscribe(self.on_message_edited.emit),
            self._channel.on_state_change.subscribe(self.on_connection_change.emit),
            self._channel.on_typing.subscribe(self.on_typing.emit),
            self._channel.on_browser_key_update.subscribe(self._on_browser_key_rotated),
        ]

    # === Properties ===

    @property
    def settings(self) -> ChatSettings:
        return self._settings

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def remote_config(self) -> RemoteAppConfig | None:
        return self._remote_config

    @property
    def browser_key(self) -> str | None:
        return self._browser_key

    @property
    def chat_id(self) -> int | None:
        return self._chat_id

    @property
    def is_initialized(self) -> bool:
        return self._state == SessionState.READY

    @property
    def is_connected(self) -> bool:
        return self._channel.is_connected

    @property
    def is_active(self) -> bool:
        return self._remote_config is not None and self._remote_config.is_active

    @property
    def channel(self) -> RealtimeChannel:
        return self._channel

    # === Lifecycle ===

    async def __aenter__(self) -> "ChatSession":
        """Async context manager entry - initializes automatically."""
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - releases connections."""
        await self.close()

    async def initialize(self) -> None:
        """Fetch the remote config, load the stored browser key and connect.

        A no-op once ready. Concurrent callers share one attempt.

        Raises:
            ConfigurationInactiveError: If the backend reports the app inactive
        """
        if self._state == SessionState.READY:
            return
        if self._init_task is None or self._init_task.done():
            self._init_task = asyncio.ensure_future(self._initialize())
        await self._init_task

    async def _initialize(self) -> None:
        self._state = SessionState.INITIALIZING
        try:
            config = await self._gateway.get_config()
            self._remote_config = config
            if not config.is_active:
                raise ConfigurationInactiveError(config.app_name)
        except Exception as e:
            self._state = SessionState.FAILED
            logger.error("chat_initialize_failed", error=str(e))
            self.on_ready.emit(False)
            raise

        self._browser_key = await self._store.get_browser_key()
        self._connect_channel()

        self._state = SessionState.READY
        logger.info(
            "chat_initialized",
            app_name=config.app_name,
            resumed=self._browser_key is not None,
        )
        self.on_ready.emit(True)

    def _connect_channel(self) -> "asyncio.Task[None] | None":
        config = self._remote_config
        if config is None:
            raise NotInitializedError()
        url = self._settings.socket_url or config.socket_url
        return self._channel.connect(url, config.socket_api_key, self._browser_key)

    async def close(self) -> None:
        """Disconnect and release every owned resource."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        await self._channel.close()
        await self._gateway.aclose()
        if hasattr(self._kv_store, "close"):
            await self._kv_store.close()

        for stream in (
            self.on_message,
            self.on_message_edited,
            self.on_connection_change,
            self.on_typing,
            self.on_ready,
        ):
            stream.close()
        logger.info("chat_closed")

    def _ensure_ready(self) -> RemoteAppConfig:
        if self._state != SessionState.READY or self._remote_config is None:
            raise NotInitializedError()
        return self._remote_config

    def _require_browser_key(self) -> str:
        if self._browser_key is None:
            raise NotRegisteredError()
        return self._browser_key

    # === Identity ===

    async def _adopt_browser_key(
        self,
        browser_key: str,
        profile: UserProfile | None = None,
        persist: bool = True,
    ) -> None:
        """Single setter for the current browser key.

        Store write and channel update happen as one step relative to
        other identity mutations.
        """
        async with self._identity_lock:
            self._browser_key = browser_key
            if persist:
                await self._store.set_browser_key(browser_key)
            if profile is not None:
                await self._store.set_profile(profile)
            await self._channel.update_browser_key(browser_key)
        logger.info("browser_key_adopted", browser_key=mask_key(browser_key))

    async def _on_browser_key_rotated(self, browser_key: str) -> None:
        if browser_key == self._browser_key:
            return
        await self._adopt_browser_key(browser_key)

    async def _persist_profile(self, fields: dict[str, Any]) -> UserProfile:
        """Store a profile, keeping the local registration stamps."""
        async with self._identity_lock:
            existing = await self._store.get_profile() or {}
            profile: UserProfile = dict(fields)
            profile["registered"] = True
            profile["registrationDate"] = existing.get("registrationDate") or _now_iso()
            await self._store.set_profile(profile)
        return profile

    def _forward_message(self, realtime_message: RealtimeMessage) -> None:
        self.on_message.emit(realtime_message.message)

    # === Registration ===

    async def register(
        self,
        user_data: dict[str, Any],
        endpoint: str | None = None,
    ) -> RegistrationResult:
        """Register this device with the backend.

        Every server-declared required field must be present and
        non-empty; otherwise no request is made. Racing calls are
        last-write-wins on the adopted browser key.

        Args:
            user_data: Profile fields (name, phone, email, ...)
            endpoint: Optional label of the screen/flow that registered

        Raises:
            NotInitializedError: If the session is not ready
            MissingRequiredFieldError: If a required field is missing or empty
        """
        config = self._ensure_ready()
        for field in config.missing_fields(user_data):
            raise MissingRequiredFieldError(field, config.required_fields.get(field))

        result = await self._gateway.register_browser(user_data, endpoint)

        profile: UserProfile = dict(user_data)
        profile["registered"] = True
        profile["registrationDate"] = _now_iso()

        if result.chat_id is not None:
            self._chat_id = result.chat_id
        await self._adopt_browser_key(result.browser_key, profile=profile)
        return result

    async def update_profile(self, user_data: dict[str, Any]) -> BrowserUpdateResult:
        """Replace the profile on the backend and locally.

        Returns:
            Update result, including recent messages when the backend sends them
        """
        self._ensure_ready()
        browser_key = self._require_browser_key()

        result = await self._gateway.update_browser(browser_key, user_data)
        if result.chat_id is not None:
            self._chat_id = result.chat_id
        await self._persist_profile(user_data)
        return result

    async def update_profile_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge fields into the profile; unspecified fields are kept.

        Returns:
            The full profile as returned by the backend
        """
        self._ensure_ready()
        browser_key = self._require_browser_key()

        result = await self._gateway.update_user_data(browser_key, fields)
        await self._persist_profile(result.user_data)
        return result.user_data

    async def is_registered(self) -> bool:
        return await self._store.is_registered()

    async def get_user_data(self) -> UserProfile | None:
        return await self._store.get_profile()

    # === Messaging ===

    async def send_message(
        self,
        message: str,
        endpoint: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SendMessageResult:
        """Send a text message.

        Agent and staff replies arrive later on ``on_message``.
        """
        self._ensure_ready()
        browser_key = self._require_browser_key()

        result = await self._gateway.send_message(browser_key, message, endpoint, metadata)
        self._chat_id = result.chat_id
        return result

    async def edit_message(self, message_id: int, content: str) -> EditMessageResult:
        self._ensure_ready()
        browser_key = self._require_browser_key()
        return await self._gateway.edit_message(browser_key, message_id, content)

    async def send_attachment(
        self,
        content: bytes | BinaryIO,
        filename: str,
        endpoint: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> UploadResult:
        """Upload an image or file.

        Args:
            content: File bytes or binary file object
            filename: File name sent with the upload
            endpoint: Optional screen/flow label
            on_progress: Called with (bytes_sent, total_bytes)
            cancel_token: Aborts the upload with UploadCancelledError
        """
        self._ensure_ready()
        browser_key = self._require_browser_key()
        return await self._gateway.upload_attachment(
            browser_key,
            content,
            filename,
            endpoint=endpoint,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    send_image = send_attachment
    send_file = send_attachment

    async def send_typing_indicator(self, is_typing: bool) -> None:
        """Tell the other side whether the user is typing. No-op without a browser key."""
        if self._browser_key is None:
            return
        await self._channel.send_typing(self._browser_key, is_typing)

    # === History ===

    async def fetch_history(
        self,
        page: int = 1,
        per_page: int | None = None,
    ) -> PaginatedHistoryPage:
        """Fetch one page of history for the current browser key."""
        browser_key = self._require_browser_key()
        return await self._gateway.get_messages(
            browser_key,
            page=page,
            per_page=per_page or self._settings.default_per_page,
        )

    async def load_history_for_resume(
        self,
        page: int = 1,
        per_page: int | None = None,
    ) -> PaginatedHistoryPage:
        """Load history when the app starts, without ever raising.

        Returns an empty page when no browser key or profile is stored
        (the user has not registered yet) and when the fetch fails.
        """
        per_page = per_page or self._settings.default_per_page
        empty = PaginatedHistoryPage.empty(per_page=per_page)
        try:
            if self._browser_key is None:
                stored = await self._store.get_browser_key()
                if stored is not None:
                    await self._adopt_browser_key(stored, persist=False)

            if self._browser_key is None:
                return empty
            if await self._store.get_profile() is None:
                return empty

            return await self.fetch_history(page=page, per_page=per_page)
        except Exception as e:
            logger.warning("resume_history_failed", error=str(e))
            return empty

    # === Connection control ===

    async def reset(self) -> None:
        """Forget the session locally and disconnect.

        ``initialize()`` must be called again before further use.
        """
        async with self._identity_lock:
            await self._store.clear_all()
            self._browser_key = None
            self._chat_id = None
            await self._channel.update_browser_key(None)
        await self._channel.disconnect()

        self._state = SessionState.UNINITIALIZED
        self._remote_config = None
        self._init_task = None
        logger.info("chat_reset")

    async def disconnect(self) -> None:
        await self._channel.disconnect()

    def reconnect(self) -> "asyncio.Task[None] | None":
        """Reconnect the realtime channel with the remembered settings.

        A no-op when the remote config was never fetched.
        """
        if self._remote_config is None or not self._remote_config.is_active:
            return None
        return self._connect_channel()


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
