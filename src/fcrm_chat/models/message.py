"""Message models for fcrm_chat.

These models represent chat messages as delivered by the REST history
endpoints and by realtime broadcasts. Both paths decode into ChatMessage.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError

from fcrm_chat.exceptions import MalformedResponseError

__all__ = [
    "ChatMessage",
    "SenderType",
]

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp")


class SenderType(StrEnum):
    """Who authored a message.

    Values are the backend's wire spellings.
    """

    USER = "user"
    STAFF = "admin"
    AGENT = "ai"
    SYSTEM = "system"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ChatMessage(BaseModel, frozen=True):
    """A single chat message.

    Attributes:
        id: Server message ID
        chat_id: Owning chat ID
        content: Text, or an image/file URL
        type: Sender classification
        sender_name: Display name of the sender, if known
        sender_type: Raw sender type reported by the backend
        created_at: Creation timestamp
        metadata: Free-form metadata (e.g. ``is_image``)
    """

    id: int
    chat_id: int
    content: str = ""
    type: SenderType = Field(default=SenderType.USER)
    sender_name: str | None = None
    sender_type: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        """Decode a message from a wire payload.

        Raises:
            MalformedResponseError: If the payload does not describe a message
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"Expected message object, got {type(payload).__name__}"
            )
        data = dict(payload)
        if isinstance(data.get("type"), str):
            data["type"] = data["type"].lower()
        if data.get("type") is None:
            data.pop("type", None)
        if data.get("created_at") is None:
            data.pop("created_at", None)
        if not isinstance(data.get("metadata"), dict):
            data["metadata"] = None
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid message payload: {e}") from e

    def to_payload(self) -> dict[str, Any]:
        """Encode the message in wire format."""
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "content": self.content,
            "type": self.type.value,
            "sender_name": self.sender_name,
            "sender_type": self.sender_type,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }

    @property
    def is_image(self) -> bool:
        """Check if the message carries an image."""
        if self.metadata and self.metadata.get("is_image") is True:
            return True
        lowered = self.content.lower()
        has_extension = any(ext in lowered for ext in IMAGE_EXTENSIONS)
        is_hosted = "/storage/" in lowered or lowered.startswith("http")
        return has_extension and is_hosted

    @property
    def is_from_user(self) -> bool:
        return self.type == SenderType.USER
