"""Cancellation token for long-running uploads."""

import asyncio

__all__ = ["CancelToken"]


class CancelToken:
    """Signals that an in-flight upload should be aborted.

    A token can be cancelled from any task, including from inside the
    upload's own progress callback. Cancelling twice is harmless.

    Example:
        token = CancelToken()
        task = asyncio.create_task(session.send_image(data, "photo.jpg", cancel_token=token))
        token.cancel()
        await task  # raises UploadCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()
