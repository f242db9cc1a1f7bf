"""REST response models for fcrm_chat.

Each model decodes one endpoint's JSON body through ``from_payload``.
"""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fcrm_chat.exceptions import MalformedResponseError
from fcrm_chat.models.message import ChatMessage

__all__ = [
    "BrowserUpdateResult",
    "EditMessageResult",
    "EditedMessage",
    "RegistrationResult",
    "SendMessageResult",
    "UploadResult",
    "UserDataUpdateResult",
]


def _decode(cls: type[BaseModel], payload: Any, what: str) -> Any:
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Expected {what} object")
    try:
        return cls.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid {what} response: {e}") from e


def _decode_messages(value: Any) -> list[ChatMessage] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError("last_messages must be a list")
    return [ChatMessage.from_payload(m) for m in value]


class RegistrationResult(BaseModel, frozen=True):
    """Response of ``/register-browser``."""

    success: bool = False
    browser_key: str = Field(min_length=1)
    chat_id: int | None = None
    message: str | None = None
    last_messages: list[ChatMessage] | None = None

    @field_validator("last_messages", mode="before")
    @classmethod
    def _decode_last_messages(cls, value: Any) -> list[ChatMessage] | None:
        return _decode_messages(value)

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        return _decode(cls, payload, "registration")


class BrowserUpdateResult(BaseModel, frozen=True):
    """Response of ``/browser/update``."""

    success: bool = False
    chat_id: int | None = None
    last_messages: list[ChatMessage] | None = None

    @field_validator("last_messages", mode="before")
    @classmethod
    def _decode_last_messages(cls, value: Any) -> list[ChatMessage] | None:
        return _decode_messages(value)

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        return _decode(cls, payload, "browser update")

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self.last_messages or [])


class UserDataUpdateResult(BaseModel, frozen=True):
    """Response of ``/browser/update-data``."""

    success: bool = False
    user_data: dict[str, Any]
    message: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        return _decode(cls, payload, "user data update")


class SendMessageResult(BaseModel, frozen=True):
    """Response of ``/send-message``.

    Agent and staff replies arrive later over the realtime channel;
    ``ai_message`` is only set when the backend answered inline.
    """

    success: bool = False
    user_message_id: int
    chat_id: int
    ai_agent_enabled: bool = False
    ai_message: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        return _decode(cls, payload, "send message")


class EditedMessage(BaseModel, frozen=True):
    id: int
    content: str
    edited: bool = False
    edited_at: str | None = None


class EditMessageResult(BaseModel, frozen=True):
    """Response of ``/edit-message``."""

    success: bool = False
    message: EditedMessage

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        return _decode(cls, payload, "edit message")


class UploadResult(BaseModel, frozen=True):
    """Response of ``/upload-image``. Extra keys are kept."""

    model_config = ConfigDict(extra="allow")

    image_url: str

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        return _decode(cls, payload, "upload")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()
