"""Remote chat app configuration for fcrm_chat."""

from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator

from fcrm_chat.exceptions import MalformedResponseError

__all__ = [
    "RemoteAppConfig",
]


class RemoteAppConfig(BaseModel, frozen=True):
    """Configuration the backend declares for a chat app.

    Fetched once per session at initialize time and read-only afterward.
    An absent ``is_active`` means the app is inactive.

    Attributes:
        app_name: Display name of the chat app
        app_description: Optional description
        logo_url: Optional logo URL
        is_active: Whether the app accepts chats
        settings: Free-form settings map
        required_fields: Registration field name -> human label
        socket_url: Realtime endpoint URL
        socket_api_key: Realtime auth key
    """

    app_name: str = "Chat"
    app_description: str | None = None
    logo_url: str | None = None
    is_active: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)
    required_fields: dict[str, str] = Field(default_factory=dict)
    socket_url: str
    socket_api_key: str

    @field_validator("settings", "required_fields", mode="before")
    @classmethod
    def _empty_list_as_mapping(cls, value: Any) -> Any:
        # PHP backends encode an empty map as []
        if value is None or value == []:
            return {}
        return value

    @field_validator("required_fields", mode="before")
    @classmethod
    def _stringify_labels(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        """Decode a ``/config`` response.

        Raises:
            MalformedResponseError: If the payload is not a valid config
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError("Expected config object")
        data = {k: v for k, v in payload.items() if v is not None}
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid app config: {e}") from e

    @property
    def start_text(self) -> str:
        value = self.settings.get("startText")
        return "" if value is None else str(value)

    @property
    def is_ai_agent_enabled(self) -> bool:
        return self.settings.get("ai_agent_enabled") is True

    @property
    def header_color(self) -> str:
        return str(self.settings.get("ms_header_color") or "white")

    @property
    def name_color(self) -> str:
        return str(self.settings.get("ms_name_color") or "darkred")

    def missing_fields(self, user_data: dict[str, Any]) -> list[str]:
        """Return required fields absent or empty in ``user_data``, in declared order."""
        missing = []
        for field in self.required_fields:
            value = user_data.get(field)
            if value is None or str(value) == "":
                missing.append(field)
        return missing
