"""Unit tests for request signing and settings."""

import hashlib
import hmac

from fcrm_chat.config import ChatSettings
from fcrm_chat.logging import _mask_sensitive, mask_key
from fcrm_chat.utils.signing import generate_signature, verify_signature


class TestSignature:
    """Tests for HMAC signature generation."""

    def test_matches_hmac_sha256(self) -> None:
        expected = hmac.new(b"app-secret", b"app-key", hashlib.sha256).hexdigest()
        assert generate_signature("app-key", "app-secret") == expected

    def test_is_lowercase_hex(self) -> None:
        signature = generate_signature("app-key", "app-secret")
        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)

    def test_deterministic(self) -> None:
        assert generate_signature("k", "s") == generate_signature("k", "s")
        assert generate_signature("k", "s") != generate_signature("k", "other")

    def test_verify(self) -> None:
        signature = generate_signature("app-key", "app-secret")
        assert verify_signature("app-key", "app-secret", signature)
        assert not verify_signature("app-key", "wrong", signature)


class TestChatSettings:
    """Tests for derived settings."""

    def test_api_url(self, settings: ChatSettings) -> None:
        assert settings.api_url == "https://crm.test/api/v1/mobile-chat/tenant"

    def test_api_url_strips_trailing_slash(self) -> None:
        settings = ChatSettings(base_url="https://crm.test/", company_token="t")
        assert settings.api_url == "https://crm.test/api/v1/mobile-chat/t"

    def test_signature_uses_secret(self, settings: ChatSettings) -> None:
        assert settings.signature == generate_signature("app-key-123456", "app-secret")

    def test_secret_not_in_repr(self, settings: ChatSettings) -> None:
        assert "app-secret" not in repr(settings)

    def test_defaults(self) -> None:
        settings = ChatSettings()
        assert settings.reconnection_attempts == 5
        assert settings.reconnection_delay_seconds == 1.0
        assert settings.timeout_seconds == 20.0
        assert settings.default_per_page == 20


class TestMaskKey:
    def test_masks_long_keys(self) -> None:
        assert mask_key("abcdefghijkl") == "abcd...ijkl"

    def test_hides_short_keys(self) -> None:
        assert mask_key("short") == "***"

    def test_none(self) -> None:
        assert mask_key(None) is None

    def test_processor_masks_sensitive_keys(self) -> None:
        event = _mask_sensitive(
            None, "info", {"event": "x", "browser_key": "abcdefghijkl", "chat_id": 42}
        )
        assert event == {"event": "x", "browser_key": "abcd...ijkl", "chat_id": 42}
