"""Broadcast event streams for fcrm_chat.

Streams replace the callback/observable surface of the SDK: the realtime
channel and the session publish to them, callers subscribe.
"""

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Generic, TypeVar

from fcrm_chat.logging import get_logger

__all__ = [
    "EventStream",
    "Listener",
]

logger = get_logger(__name__)

T = TypeVar("T")

Listener = Callable[[T], Awaitable[None] | None]


class EventStream(Generic[T]):
    """Multi-subscriber event stream.

    Listeners are called synchronously in subscription order. A listener
    that returns an awaitable is scheduled as a task on the running loop;
    those tasks are tracked until they finish. Listener failures are logged
    and never reach the emitter.

    Example:
        stream: EventStream[bool] = EventStream("typing")
        unsubscribe = stream.subscribe(lambda typing: print(typing))
        stream.emit(True)
        unsubscribe()
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, value: T) -> None:
        """Deliver a value to every current listener."""
        if self._closed:
            return
        for listener in list(self._listeners):
            try:
                result = listener(value)
            except Exception as e:
                logger.warning("event_listener_failed", stream=self._name, error=str(e))
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

    def _schedule(self, awaitable: Awaitable[None]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("event_listener_failed", stream=self._name, error=str(exc))

    async def drain(self) -> None:
        """Wait for scheduled coroutine listeners to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def stream(self) -> AsyncIterator[T]:
        """Iterate over values emitted after this call.

        Example:
            async for message in session.on_message.stream():
                print(message.content)
        """
        queue: asyncio.Queue[T] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    def close(self) -> None:
        """Drop all listeners and ignore further emits."""
        self._closed = True
        self._listeners.clear()
