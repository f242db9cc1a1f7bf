"""Unit tests for RealtimeChannel."""

import asyncio

import pytest

from fcrm_chat.infra.realtime.channel import RealtimeChannel, RealtimeMessage, room_name
from fcrm_chat.models.message import ChatMessage
from fcrm_chat.models.state import ConnectionState, RealtimeEventKind
from tests.mocks.mock_backend import message_payload
from tests.mocks.mock_socket import MockSocketFactory

CURRENT = "App:Events:Chat:MessageEvent"
LEGACY = "App\\Events\\Chat\\MessageEvent"
TELEGRAM = "App:Events:Telegram:MessageEvent"
EDITED = "App:Events:Chat:MessageEditedEvent"


async def _connect(channel: RealtimeChannel, browser_key: str | None = "bk-1") -> None:
    task = channel.connect("https://socket.crm.test", "socket-api-key", browser_key)
    assert task is not None
    await task


def _collect(channel: RealtimeChannel) -> list[RealtimeMessage]:
    received: list[RealtimeMessage] = []
    channel.on_message.subscribe(received.append)
    return received


class TestConnect:
    """Tests for connection lifecycle."""

    @pytest.mark.asyncio
    async def test_connect_joins_private_room(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        states: list[ConnectionState] = []
        channel.on_state_change.subscribe(states.append)

        await _connect(channel)

        client = socket_factory.last
        assert channel.state == ConnectionState.CONNECTED
        assert channel.is_connected
        assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
        assert client.emitted == [("join", "private-chat_bk-1")]
        assert client.connect_calls[0]["url"] == "https://socket.crm.test"
        assert client.connect_calls[0]["auth"] == {"key": "socket-api-key", "browser_key": "bk-1"}
        assert client.connect_calls[0]["transports"] == ["websocket", "polling"]

    @pytest.mark.asyncio
    async def test_connect_without_browser_key(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel, browser_key=None)

        client = socket_factory.last
        assert channel.is_connected
        assert client.emitted == []
        assert client.connect_calls[0]["auth"] == {"key": "socket-api-key"}

    @pytest.mark.asyncio
    async def test_connect_while_connected_is_noop(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)

        assert channel.connect("https://socket.crm.test", "socket-api-key", "bk-1") is None
        assert len(socket_factory.clients) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self) -> None:
        factory = MockSocketFactory(fail_connects=10)
        channel = RealtimeChannel(factory, reconnection_attempts=2, reconnection_delay=0)
        states: list[ConnectionState] = []
        channel.on_state_change.subscribe(states.append)

        await _connect(channel)

        assert len(factory.last.connect_calls) == 3
        assert channel.state == ConnectionState.DISCONNECTED
        assert not channel.is_connected
        assert states == [ConnectionState.CONNECTING, ConnectionState.DISCONNECTED]

    @pytest.mark.asyncio
    async def test_retries_until_connected(self) -> None:
        factory = MockSocketFactory(fail_connects=2)
        channel = RealtimeChannel(factory, reconnection_attempts=5, reconnection_delay=0)

        await _connect(channel)

        assert len(factory.last.connect_calls) == 3
        assert channel.is_connected
        assert factory.last.emitted_events("join") == ["private-chat_bk-1"]

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)

        await channel.disconnect()
        await channel.disconnect()

        assert channel.state == ConnectionState.DISCONNECTED
        assert socket_factory.last.shutdown_calls == 1
        assert channel.browser_key == "bk-1"

    @pytest.mark.asyncio
    async def test_disconnect_before_connect(self, channel: RealtimeChannel) -> None:
        await channel.disconnect()
        assert channel.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_reconnect_after_disconnect_uses_fresh_client(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        await channel.disconnect()
        await _connect(channel, browser_key=None)

        assert len(socket_factory.clients) == 2
        assert socket_factory.last.emitted == [("join", "private-chat_bk-1")]
        assert socket_factory.last.connect_calls[0]["auth"]["browser_key"] == "bk-1"

    @pytest.mark.asyncio
    async def test_disconnect_after_drop_stops_auto_reconnect(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        client = socket_factory.last
        await client.simulate_drop()

        await channel.disconnect()
        await client.simulate_reconnect()

        assert client.shutdown_calls == 1
        assert len(client.connect_calls) == 1
        assert channel.state == ConnectionState.DISCONNECTED
        assert client.emitted_events("join") == ["private-chat_bk-1"]

    @pytest.mark.asyncio
    async def test_unexpected_connect_error_ends_disconnected(self) -> None:
        error = ValueError("Invalid URL: ws:///socket.io/")
        factory = MockSocketFactory(fail_connects=10, error=error)
        channel = RealtimeChannel(factory, reconnection_attempts=1, reconnection_delay=0)
        states: list[ConnectionState] = []
        channel.on_state_change.subscribe(states.append)

        task = channel.connect("", "socket-api-key", None)
        assert task is not None
        await task

        assert task.exception() is None
        assert len(factory.last.connect_calls) == 2
        assert states == [ConnectionState.CONNECTING, ConnectionState.DISCONNECTED]
        retry = channel.connect("https://socket.crm.test", "socket-api-key")
        assert retry is not None
        await retry
        assert len(factory.clients) == 2

    @pytest.mark.asyncio
    async def test_stale_client_handshake_is_shut_down(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        old = socket_factory.last
        await old.simulate_drop()
        await _connect(channel)
        current = socket_factory.last

        # The old client completes a handshake of its own after being replaced
        await old.trigger("connect")
        for _ in range(3):
            await asyncio.sleep(0)

        assert old.shutdown_calls == 2
        assert channel.state == ConnectionState.CONNECTED
        assert current.shutdown_calls == 0
        assert old.emitted_events("join") == ["private-chat_bk-1"]


class TestReconnection:
    """Tests for automatic reconnects on the same client."""

    @pytest.mark.asyncio
    async def test_one_join_per_reconnect(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        client = socket_factory.last

        for _ in range(3):
            await client.simulate_drop()
            assert channel.state == ConnectionState.DISCONNECTED
            await client.simulate_reconnect()
            assert channel.state == ConnectionState.CONNECTED

        assert client.emitted_events("join") == ["private-chat_bk-1"] * 4
        assert len(client.handlers["connect"]) == 1
        assert len(client.handlers[CURRENT]) == 1

    @pytest.mark.asyncio
    async def test_no_duplicate_delivery_after_reconnects(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        await _connect(channel)
        client = socket_factory.last
        for _ in range(3):
            await client.simulate_drop()
            await client.simulate_reconnect()

        await client.trigger(CURRENT, {"message": message_payload(10, "Hi", "admin")})

        assert [m.message.id for m in received] == [10]

    @pytest.mark.asyncio
    async def test_reconnect_handshake_carries_current_key(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        client = socket_factory.last

        await client.simulate_drop()
        await channel.update_browser_key("bk-2")
        await client.simulate_reconnect()

        assert client.connect_calls[-1]["auth"] == {"key": "socket-api-key", "browser_key": "bk-2"}
        assert client.emitted_events("join")[-1] == "private-chat_bk-2"

    @pytest.mark.asyncio
    async def test_events_from_replaced_client_are_ignored(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        await _connect(channel)
        old = socket_factory.last
        await channel.disconnect()
        await _connect(channel)

        await old.trigger(CURRENT, {"message": message_payload(11)})
        await socket_factory.last.trigger(CURRENT, {"message": message_payload(12)})

        assert [m.message.id for m in received] == [12]


class TestBroadcasts:
    """Tests for broadcast normalization."""

    @pytest.mark.asyncio
    async def test_both_spellings_delivered_once(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        await _connect(channel)
        client = socket_factory.last

        payload = {"message": message_payload(20, "Salam", "admin"), "event": "new"}
        await client.trigger(CURRENT, payload)
        await client.trigger(LEGACY, payload)

        assert len(received) == 1
        assert received[0].kind == RealtimeEventKind.CHAT_MESSAGE
        assert received[0].wire_name == CURRENT
        assert received[0].event == "new"
        assert received[0].message.content == "Salam"

    @pytest.mark.asyncio
    async def test_legacy_spelling_alone_is_accepted(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        await _connect(channel)

        await socket_factory.last.trigger(LEGACY, {"message": message_payload(21)})

        assert [m.message.id for m in received] == [21]
        assert received[0].kind == RealtimeEventKind.CHAT_MESSAGE

    @pytest.mark.asyncio
    async def test_external_channel_messages(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        await _connect(channel)

        await socket_factory.last.trigger(TELEGRAM, message_payload(22, type_="admin"))

        assert received[0].kind == RealtimeEventKind.EXTERNAL_MESSAGE
        assert received[0].message.id == 22

    @pytest.mark.asyncio
    async def test_edited_messages_bypass_dedup(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        edited: list[ChatMessage] = []
        channel.on_message_edited.subscribe(edited.append)
        await _connect(channel)
        client = socket_factory.last

        await client.trigger(CURRENT, {"message": message_payload(30, "typo")})
        await client.trigger(EDITED, {"message": message_payload(30, "fixed")})
        await client.trigger(EDITED, {"message": message_payload(30, "fixed again")})

        assert len(received) == 1
        assert [m.content for m in edited] == ["fixed", "fixed again"]

    @pytest.mark.asyncio
    async def test_malformed_broadcast_is_dropped(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        received = _collect(channel)
        await _connect(channel)

        await socket_factory.last.trigger(CURRENT, {"message": {"content": "no id"}})
        await socket_factory.last.trigger(CURRENT, "garbage")

        assert received == []


class TestRooms:
    """Tests for room membership and outgoing events."""

    @pytest.mark.asyncio
    async def test_update_key_leaves_and_joins_once(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        client = socket_factory.last
        client.emitted.clear()

        await channel.update_browser_key("bk-2")

        assert client.emitted == [("leave", room_name("bk-1")), ("join", room_name("bk-2"))]
        assert channel.browser_key == "bk-2"

    @pytest.mark.asyncio
    async def test_update_with_same_key_is_noop(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        client = socket_factory.last
        client.emitted.clear()

        await channel.update_browser_key("bk-1")

        assert client.emitted == []

    @pytest.mark.asyncio
    async def test_update_while_disconnected(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await channel.update_browser_key("bk-3")
        assert channel.browser_key == "bk-3"

        await _connect(channel, browser_key=None)

        assert socket_factory.last.emitted == [("join", "private-chat_bk-3")]

    @pytest.mark.asyncio
    async def test_clearing_key_leaves_room(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await _connect(channel)
        client = socket_factory.last
        client.emitted.clear()

        await channel.update_browser_key(None)

        assert client.emitted == [("leave", "private-chat_bk-1")]
        assert channel.browser_key is None

    @pytest.mark.asyncio
    async def test_generic_room_join_and_leave(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await channel.subscribe("support")

        await _connect(channel, browser_key=None)
        client = socket_factory.last
        await channel.subscribe("support")
        await channel.unsubscribe("support")

        assert client.emitted == [("join", "support"), ("leave", "support")]

    @pytest.mark.asyncio
    async def test_typing_dropped_when_disconnected(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        await channel.send_typing("bk-1", True)

        await _connect(channel)
        await channel.send_typing("bk-1", True)

        assert socket_factory.last.emitted_events("typing") == [
            {"browser_key": "bk-1", "isTyping": True}
        ]


class TestIncomingEvents:
    @pytest.mark.asyncio
    async def test_typing_indicator(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        typing: list[bool] = []
        channel.on_typing.subscribe(typing.append)
        await _connect(channel)
        client = socket_factory.last

        await client.trigger("typing", {"isTyping": True})
        await client.trigger("typing", {"isTyping": False})
        await client.trigger("typing", {"isTyping": "yes"})

        assert typing == [True, False, False]

    @pytest.mark.asyncio
    async def test_browser_key_rotation_is_published(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        rotated: list[str] = []
        channel.on_browser_key_update.subscribe(rotated.append)
        await _connect(channel)

        await socket_factory.last.trigger("browser-key-updated", {"browser_key": "bk-9"})
        await socket_factory.last.trigger("browser-key-updated", {"other": 1})

        assert rotated == ["bk-9"]
        # Applied by the owner through update_browser_key
        assert channel.browser_key == "bk-1"

    @pytest.mark.asyncio
    async def test_auth_error(
        self, channel: RealtimeChannel, socket_factory: MockSocketFactory
    ) -> None:
        errors: list[object] = []
        channel.on_auth_error.subscribe(errors.append)
        await _connect(channel)

        await socket_factory.last.trigger("auth-error", {"message": "Invalid key"})

        assert errors == [{"message": "Invalid key"}]
