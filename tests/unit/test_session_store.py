"""Unit tests for SessionStore."""

import json

import pytest

from fcrm_chat.infra.storage.memory import InMemoryKeyValueStore
from fcrm_chat.services.session_store import SessionStore


class TestSessionStore:
    """Tests for browser key and profile persistence."""

    def test_storage_keys_are_namespaced(self, session_store: SessionStore) -> None:
        assert session_store.browser_storage_key == "fcrm_chat_browser_app-key-123456"
        assert session_store.profile_storage_key == "fcrm_chat_user_app-key-123456"

    @pytest.mark.asyncio
    async def test_browser_key_round_trip(self, session_store: SessionStore) -> None:
        assert await session_store.get_browser_key() is None
        await session_store.set_browser_key("bk-1")
        assert await session_store.get_browser_key() == "bk-1"

    @pytest.mark.asyncio
    async def test_empty_browser_key_reads_as_absent(
        self, kv_store: InMemoryKeyValueStore, session_store: SessionStore
    ) -> None:
        await kv_store.set(session_store.browser_storage_key, "")
        assert await session_store.get_browser_key() is None

    @pytest.mark.asyncio
    async def test_profile_round_trip(
        self, kv_store: InMemoryKeyValueStore, session_store: SessionStore
    ) -> None:
        profile = {"name": "Јован", "phone": "+1234567890", "registered": True}
        await session_store.set_profile(profile)

        assert await session_store.get_profile() == profile
        stored = kv_store.snapshot()[session_store.profile_storage_key]
        assert json.loads(stored) == profile

    @pytest.mark.asyncio
    async def test_unreadable_profile_reads_as_absent(
        self, kv_store: InMemoryKeyValueStore, session_store: SessionStore
    ) -> None:
        await kv_store.set(session_store.profile_storage_key, "{not json")
        assert await session_store.get_profile() is None

        await kv_store.set(session_store.profile_storage_key, "[1, 2]")
        assert await session_store.get_profile() is None

    @pytest.mark.asyncio
    async def test_is_registered_requires_flag(self, session_store: SessionStore) -> None:
        assert await session_store.is_registered() is False

        await session_store.set_profile({"name": "John"})
        assert await session_store.is_registered() is False

        await session_store.set_profile({"name": "John", "registered": True})
        assert await session_store.is_registered() is True

    @pytest.mark.asyncio
    async def test_clear_all(self, session_store: SessionStore) -> None:
        await session_store.set_browser_key("bk-1")
        await session_store.set_profile({"name": "John", "registered": True})

        await session_store.clear_all()

        assert await session_store.get_browser_key() is None
        assert await session_store.get_profile() is None
        assert await session_store.is_registered() is False

    @pytest.mark.asyncio
    async def test_apps_do_not_collide(self, kv_store: InMemoryKeyValueStore) -> None:
        first = SessionStore(kv_store, "app-one")
        second = SessionStore(kv_store, "app-two")

        await first.set_browser_key("bk-one")
        await second.set_browser_key("bk-two")
        await second.clear_all()

        assert await first.get_browser_key() == "bk-one"
        assert await second.get_browser_key() is None
