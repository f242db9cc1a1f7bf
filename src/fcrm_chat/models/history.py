"""Paginated history models for fcrm_chat."""

from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, computed_field

from fcrm_chat.exceptions import MalformedResponseError
from fcrm_chat.models.message import ChatMessage

__all__ = [
    "PaginatedHistoryPage",
]


class PaginatedHistoryPage(BaseModel, frozen=True):
    """One page of chat history.

    ``has_more`` is derived from the page numbers and is never read
    from the wire.

    Attributes:
        messages: Messages on this page, in server order
        total: Total number of messages in the chat
        current_page: 1-based page number
        per_page: Page size echoed back by the server
        last_page: Number of the last page
    """

    messages: list[ChatMessage] = Field(default_factory=list)
    total: int = Field(ge=0)
    current_page: int = Field(ge=1)
    per_page: int = Field(gt=0)
    last_page: int = Field(ge=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_more(self) -> bool:
        return self.current_page < self.last_page

    @classmethod
    def empty(cls, per_page: int = 20) -> Self:
        """Page returned when there is no registered session to load."""
        return cls(messages=[], total=0, current_page=1, per_page=per_page, last_page=1)

    @classmethod
    def from_payload(cls, payload: Any) -> Self:
        """Decode a ``/messages`` response.

        Raises:
            MalformedResponseError: If messages or pagination are missing or invalid
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError("Expected history object")
        raw_messages = payload.get("messages")
        pagination = payload.get("pagination")
        if not isinstance(raw_messages, list):
            raise MalformedResponseError("History response has no messages list")
        if not isinstance(pagination, dict):
            raise MalformedResponseError("History response has no pagination object")

        messages = [ChatMessage.from_payload(m) for m in raw_messages]
        try:
            return cls(
                messages=messages,
                total=pagination["total"],
                current_page=pagination["current_page"],
                per_page=pagination["per_page"],
                last_page=pagination["last_page"],
            )
        except (KeyError, ValidationError) as e:
            raise MalformedResponseError(f"Invalid pagination: {e}") from e

    def to_payload(self) -> dict[str, Any]:
        return {
            "messages": [m.to_payload() for m in self.messages],
            "pagination": {
                "total": self.total,
                "current_page": self.current_page,
                "per_page": self.per_page,
                "last_page": self.last_page,
                "has_more": self.has_more,
            },
        }
