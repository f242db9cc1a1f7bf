"""Exception hierarchy for fcrm_chat.

Local validation and state errors (missing field, not initialized,
not registered) are raised before any network call. Transport and
server errors come from the REST gateway unchanged.
"""

__all__ = [
    "ChatApiError",
    "ChatError",
    "ChatNetworkError",
    "ChatTimeoutError",
    "ConfigurationInactiveError",
    "MalformedResponseError",
    "MissingRequiredFieldError",
    "NotInitializedError",
    "NotRegisteredError",
    "UploadCancelledError",
]


class ChatError(Exception):
    """Base class for all SDK errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationInactiveError(ChatError):
    """Raised when the remote config reports the chat app as inactive."""

    def __init__(self, app_name: str | None = None) -> None:
        name = f" '{app_name}'" if app_name else ""
        super().__init__(f"Chat app{name} is not active")
        self.app_name = app_name


class MissingRequiredFieldError(ChatError):
    """Raised when registration data lacks a server-declared required field."""

    def __init__(self, field: str, label: str | None = None) -> None:
        super().__init__(f"Missing required field: {label or field}")
        self.field = field
        self.label = label or field


class NotInitializedError(ChatError):
    """Raised when an operation needs a ready session."""

    def __init__(self) -> None:
        super().__init__("Chat not initialized. Call initialize() first.")


class NotRegisteredError(ChatError):
    """Raised when an operation needs a browser key and none is held."""

    def __init__(self) -> None:
        super().__init__("Not registered. Call register() first.")


class ChatNetworkError(ChatError):
    """Raised when a request could not reach the backend."""


class ChatTimeoutError(ChatNetworkError):
    """Raised when a request exceeded the configured timeout."""


class ChatApiError(ChatError):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.message} (status: {self.status_code})"


class UploadCancelledError(ChatError):
    """Raised when an upload was aborted through its cancel token."""

    def __init__(self) -> None:
        super().__init__("Upload cancelled")


class MalformedResponseError(ChatError):
    """Raised when a server payload does not match the expected schema."""
