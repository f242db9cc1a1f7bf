"""REST gateway for fcrm_chat.

This module provides the typed request/response operations against the
mobile-chat backend using an async httpx client. Every request is signed
with the app's HMAC signature.
"""

import asyncio
import mimetypes
from collections.abc import AsyncIterator, Callable
from typing import Any, BinaryIO

import httpx

from fcrm_chat.config import ChatSettings
from fcrm_chat.exceptions import (
    ChatApiError,
    ChatNetworkError,
    ChatTimeoutError,
    MalformedResponseError,
    UploadCancelledError,
)
from fcrm_chat.logging import get_logger, mask_key
from fcrm_chat.models.app_config import RemoteAppConfig
from fcrm_chat.models.history import PaginatedHistoryPage
from fcrm_chat.models.responses import (
    BrowserUpdateResult,
    EditMessageResult,
    RegistrationResult,
    SendMessageResult,
    UploadResult,
    UserDataUpdateResult,
)
from fcrm_chat.utils.cancellation import CancelToken

__all__ = [
    "ProgressCallback",
    "RestGateway",
    "extract_error_message",
]

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def extract_error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an error response.

    Precedence: ``error``, then every value of the ``errors`` map joined
    with ", ", then ``message``, then a generic status message.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        if data.get("error") is not None:
            return str(data["error"])

        errors = data.get("errors")
        if isinstance(errors, dict):
            values = list(errors.values())
        elif isinstance(errors, list):
            values = errors
        else:
            values = [errors] if errors else []
        parts: list[str] = []
        for value in values:
            if isinstance(value, list):
                parts.extend(str(item) for item in value)
            else:
                parts.append(str(value))
        if parts:
            return ", ".join(parts)

        if data.get("message") is not None:
            return str(data["message"])

    return f"Request failed with status {response.status_code}"


class RestGateway:
    """Signed REST client for the chat backend.

    Owns its httpx client unless one is injected. Requests time out
    after ``settings.connection_timeout_ms`` and are never retried.

    Example:
        gateway = RestGateway(settings)
        config = await gateway.get_config()
        result = await gateway.register_browser({"name": "John", "phone": "+1"})
        await gateway.aclose()
    """

    def __init__(
        self,
        settings: ChatSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            settings: SDK settings (base URL, credentials, timeouts)
            client: Pre-built httpx client; the gateway closes it only if it created it
        """
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)
        self._timeout = httpx.Timeout(settings.timeout_seconds)

    @property
    def api_url(self) -> str:
        return self._settings.api_url

    def _url(self, path: str) -> str:
        return f"{self.api_url}/{path.lstrip('/')}"

    def _headers(self, is_json: bool = True) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-Chat-Signature": self._settings.signature,
            "X-Chat-App-Key": self._settings.app_key,
        }
        if is_json:
            headers["Content-Type"] = "application/json"
        return headers

    def _body(self, **fields: Any) -> dict[str, Any]:
        body: dict[str, Any] = {"chat_app_key": self._settings.app_key}
        body.update({k: v for k, v in fields.items() if v is not None})
        return body

    async def _send(self, request: httpx.Request, operation: str) -> httpx.Response:
        try:
            return await self._client.send(request)
        except httpx.TimeoutException as e:
            logger.warning("request_timeout", operation=operation)
            raise ChatTimeoutError(f"{operation} timed out") from e
        except httpx.HTTPError as e:
            logger.warning("request_failed", operation=operation, error=str(e))
            raise ChatNetworkError(f"{operation} failed: {e}") from e

    def _json(self, response: httpx.Response, operation: str) -> Any:
        if not response.is_success:
            message = extract_error_message(response)
            logger.warning(
                "request_rejected",
                operation=operation,
                status_code=response.status_code,
                error=message,
            )
            raise ChatApiError(message, response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"{operation} returned a non-JSON body") from e

    async def _post(self, path: str, operation: str, **fields: Any) -> Any:
        request = self._client.build_request(
            "POST",
            self._url(path),
            headers=self._headers(),
            json=self._body(**fields),
            timeout=self._timeout,
        )
        response = await self._send(request, operation)
        return self._json(response, operation)

    # === Operations ===

    async def get_config(self) -> RemoteAppConfig:
        """Fetch the chat app's remote configuration.

        The signature travels in the query string. An inactive app is
        reported through ``is_active``; the caller decides what to do.
        """
        request = self._client.build_request(
            "GET",
            self._url("config"),
            params={"key": self._settings.app_key, "sig": self._settings.signature},
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        response = await self._send(request, "get_config")
        config = RemoteAppConfig.from_payload(self._json(response, "get_config"))
        logger.info("config_received", app_name=config.app_name, is_active=config.is_active)
        return config

    async def register_browser(
        self,
        user_data: dict[str, Any],
        endpoint: str | None = None,
    ) -> RegistrationResult:
        """Register this device as a chat participant.

        Not idempotent: call once per logical registration.
        """
        data = await self._post(
            "register-browser", "register_browser", user_data=user_data, endpoint=endpoint
        )
        result = RegistrationResult.from_payload(data)
        logger.info(
            "browser_registered",
            browser_key=mask_key(result.browser_key),
            chat_id=result.chat_id,
        )
        return result

    async def update_browser(
        self,
        browser_key: str,
        user_data: dict[str, Any],
    ) -> BrowserUpdateResult:
        """Replace the stored profile for a browser key."""
        data = await self._post(
            "browser/update", "update_browser", browser_key=browser_key, user_data=user_data
        )
        return BrowserUpdateResult.from_payload(data)

    async def update_user_data(
        self,
        browser_key: str,
        data: dict[str, Any],
    ) -> UserDataUpdateResult:
        """Merge fields into the stored profile; unspecified fields are kept."""
        payload = await self._post(
            "browser/update-data", "update_user_data", browser_key=browser_key, data=data
        )
        return UserDataUpdateResult.from_payload(payload)

    async def send_message(
        self,
        browser_key: str,
        message: str,
        endpoint: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SendMessageResult:
        """Send a text message and return the synchronous echo."""
        data = await self._post(
            "send-message",
            "send_message",
            browser_key=browser_key,
            message=message,
            endpoint=endpoint,
            metadata=metadata,
        )
        result = SendMessageResult.from_payload(data)
        logger.info("message_sent", user_message_id=result.user_message_id, chat_id=result.chat_id)
        return result

    async def edit_message(
        self,
        browser_key: str,
        message_id: int,
        content: str,
    ) -> EditMessageResult:
        """Edit a previously sent message.

        The backend enforces its edit-window policy and rejects the call
        with an error status when it does not allow the edit.
        """
        data = await self._post(
            "edit-message",
            "edit_message",
            browser_key=browser_key,
            message_id=message_id,
            content=content,
        )
        return EditMessageResult.from_payload(data)

    async def get_messages(
        self,
        browser_key: str,
        page: int = 1,
        per_page: int = 20,
    ) -> PaginatedHistoryPage:
        """Fetch one page of history."""
        data = await self._post(
            "messages", "get_messages", browser_key=browser_key, page=page, per_page=per_page
        )
        history = PaginatedHistoryPage.from_payload(data)
        logger.debug(
            "messages_received",
            count=len(history.messages),
            page=history.current_page,
            last_page=history.last_page,
        )
        return history

    async def upload_attachment(
        self,
        browser_key: str,
        content: bytes | BinaryIO,
        filename: str,
        endpoint: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> UploadResult:
        """Upload an image or file as a multipart request.

        Args:
            browser_key: Current browser key
            content: File bytes or a binary file object
            filename: Name sent with the file part
            endpoint: Optional screen/flow label
            on_progress: Called with (bytes_sent, total_bytes) after every chunk
            cancel_token: Aborts the transfer when cancelled

        Raises:
            UploadCancelledError: If the token was cancelled before the response was handled
        """
        if cancel_token is not None and cancel_token.is_cancelled:
            raise UploadCancelledError()

        data = content if isinstance(content, bytes) else content.read()
        fields = {"chat_app_key": self._settings.app_key, "browser_key": browser_key}
        if endpoint is not None:
            fields["endpoint"] = endpoint
        mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        # Encode the multipart body once, then stream it in chunks
        multipart = self._client.build_request(
            "POST",
            self._url("upload-image"),
            data=fields,
            files={"image": (filename, data, mime)},
        )
        body = multipart.read()
        total = len(body)
        headers = self._headers(is_json=False)
        headers["Content-Type"] = multipart.headers["Content-Type"]
        headers["Content-Length"] = str(total)

        chunk_size = max(1, self._settings.upload_chunk_size)

        async def _chunks() -> AsyncIterator[bytes]:
            sent = 0
            for start in range(0, total, chunk_size):
                if cancel_token is not None and cancel_token.is_cancelled:
                    raise UploadCancelledError()
                chunk = body[start : start + chunk_size]
                yield chunk
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(sent, total)

        request = self._client.build_request(
            "POST",
            self._url("upload-image"),
            headers=headers,
            content=_chunks(),
            timeout=self._timeout,
        )
        logger.info("upload_started", filename=filename, total_bytes=total)

        response = await self._send_cancellable(request, cancel_token)
        result = UploadResult.from_payload(self._json(response, "upload_attachment"))
        logger.info("upload_finished", filename=filename, url=result.image_url)
        return result

    async def _send_cancellable(
        self,
        request: httpx.Request,
        cancel_token: CancelToken | None,
    ) -> httpx.Response:
        send_task = asyncio.ensure_future(self._send(request, "upload_attachment"))
        if cancel_token is None:
            return await send_task

        cancel_task = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({send_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()

        if cancel_token.is_cancelled:
            send_task.cancel()
            await asyncio.gather(send_task, return_exceptions=True)
            logger.info("upload_cancelled")
            raise UploadCancelledError()

        return send_task.result()

    async def aclose(self) -> None:
        """Close the underlying client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()
