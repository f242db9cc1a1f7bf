"""Session persistence service for fcrm_chat.

This module maps an app key to the stored browser key and cached
user profile, so a returning user resumes their conversation.
"""

import json
from typing import Any

from fcrm_chat.interfaces.storage import KeyValueStoreInterface
from fcrm_chat.logging import get_logger

__all__ = [
    "BROWSER_KEY_PREFIX",
    "USER_DATA_PREFIX",
    "SessionStore",
    "UserProfile",
]

logger = get_logger(__name__)

BROWSER_KEY_PREFIX = "fcrm_chat_browser_"
USER_DATA_PREFIX = "fcrm_chat_user_"

UserProfile = dict[str, Any]


class SessionStore:
    """Stores the browser key and user profile for one chat app.

    Every entry is namespaced by the app key, so several app
    configurations on one device never collide. Owned exclusively by
    the ChatSession that created it.
    """

    def __init__(self, store: KeyValueStoreInterface, app_key: str) -> None:
        """Initialize the session store.

        Args:
            store: Underlying key-value backend
            app_key: Chat app key used as namespace
        """
        self._store = store
        self._app_key = app_key

    @property
    def browser_storage_key(self) -> str:
        return f"{BROWSER_KEY_PREFIX}{self._app_key}"

    @property
    def profile_storage_key(self) -> str:
        return f"{USER_DATA_PREFIX}{self._app_key}"

    # Browser key

    async def get_browser_key(self) -> str | None:
        value = await self._store.get(self.browser_storage_key)
        return value or None

    async def set_browser_key(self, browser_key: str) -> None:
        await self._store.set(self.browser_storage_key, browser_key)

    async def clear_browser_key(self) -> None:
        await self._store.delete(self.browser_storage_key)

    # Profile

    async def get_profile(self) -> UserProfile | None:
        """Load the cached profile.

        Returns:
            Profile dict, or None if absent or unreadable
        """
        raw = await self._store.get(self.profile_storage_key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("stored_profile_unreadable", error=str(e))
            return None
        if not isinstance(data, dict):
            logger.warning("stored_profile_invalid", kind=type(data).__name__)
            return None
        return data

    async def set_profile(self, profile: UserProfile) -> None:
        await self._store.set(
            self.profile_storage_key,
            json.dumps(profile, ensure_ascii=False, default=str),
        )

    async def clear_profile(self) -> None:
        await self._store.delete(self.profile_storage_key)

    async def is_registered(self) -> bool:
        """True iff a profile exists and carries ``registered: true``."""
        profile = await self.get_profile()
        return profile is not None and profile.get("registered") is True

    async def clear_all(self) -> None:
        """Forget the browser key and the profile."""
        await self.clear_browser_key()
        await self.clear_profile()
