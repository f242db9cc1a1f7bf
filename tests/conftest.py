"""Shared test fixtures for fcrm_chat.

This module provides pytest fixtures used across all tests.
"""

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from fcrm_chat.config import ChatSettings, RedisSettings, StorageSettings
from fcrm_chat.infra.http.gateway import RestGateway
from fcrm_chat.infra.realtime.channel import RealtimeChannel
from fcrm_chat.infra.storage.memory import InMemoryKeyValueStore
from fcrm_chat.services.session_store import SessionStore
from fcrm_chat.session import ChatSession
from tests.mocks.mock_backend import MockChatBackend, message_payload
from tests.mocks.mock_socket import MockSocketFactory

APP_KEY = "app-key-123456"


@pytest.fixture
def settings() -> ChatSettings:
    """Settings pointing at the mock backend, with instant reconnects."""
    return ChatSettings(
        base_url="https://crm.test",
        company_token="tenant",
        app_key=APP_KEY,
        app_secret="app-secret",
        connection_timeout_ms=5000,
        upload_chunk_size=16,
        reconnection_attempts=2,
        reconnection_delay_ms=0,
        storage=StorageSettings(backend="memory"),
        redis=RedisSettings(url=None),
    )


# Mock fixtures
@pytest.fixture
def backend() -> MockChatBackend:
    """Create mock REST backend."""
    return MockChatBackend()


@pytest.fixture
def socket_factory() -> MockSocketFactory:
    """Create mock Socket.IO client factory."""
    return MockSocketFactory()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def session_store(kv_store: InMemoryKeyValueStore) -> SessionStore:
    return SessionStore(kv_store, APP_KEY)


@pytest_asyncio.fixture
async def gateway(settings: ChatSettings, backend: MockChatBackend) -> AsyncIterator[RestGateway]:
    client = backend.client()
    yield RestGateway(settings, client=client)
    await client.aclose()


@pytest.fixture
def channel(settings: ChatSettings, socket_factory: MockSocketFactory) -> RealtimeChannel:
    return RealtimeChannel.from_settings(settings, client_factory=socket_factory)


@pytest_asyncio.fixture
async def session(
    settings: ChatSettings,
    kv_store: InMemoryKeyValueStore,
    gateway: RestGateway,
    channel: RealtimeChannel,
) -> AsyncIterator[ChatSession]:
    """ChatSession wired to the mock backend, socket and memory store."""
    chat = ChatSession(settings, store=kv_store, gateway=gateway, channel=channel)
    yield chat
    await chat.close()


# Sample data fixtures
@pytest.fixture
def sample_message_payload() -> dict:
    """Create sample realtime/history message payload."""
    return message_payload(7, "Assalamu alaikum", "admin")


@pytest.fixture
def sample_user_data() -> dict:
    return {"name": "John Doe", "phone": "+1234567890", "email": "john@example.com"}
