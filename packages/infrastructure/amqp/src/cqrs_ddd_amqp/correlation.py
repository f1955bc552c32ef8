"""Registry of correlation ids awaiting a reply."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .message import Message

logger = logging.getLogger("cqrs_ddd_amqp.correlation")


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def _resolve(future: asyncio.Future[Message], message: Message) -> None:
    if not future.done():
        future.set_result(message)


class PendingReplies:
    """Thread-safe mapping of correlation id -> future awaiting the reply.

    ``register`` must be called from inside the waiting task's event loop.
    ``complete`` may be called from any thread (e.g. a transport callback
    thread); the waiter is resolved on its own loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._waiters: dict[str, asyncio.Future[Message]] = {}

    def register(self, correlation_id: str) -> asyncio.Future[Message]:
        """Create the future for *correlation_id*.

        Raises:
            ValueError: if the id is already awaiting a reply.
        """
        future: asyncio.Future[Message] = asyncio.get_running_loop().create_future()
        with self._lock:
            if correlation_id in self._waiters:
                raise ValueError(
                    f"Correlation id {correlation_id!r} is already awaiting a reply"
                )
            self._waiters[correlation_id] = future
        return future

    def complete(self, message: Message) -> bool:
        """Hand *message* to the waiter matching its correlation id.

        Returns False when nobody is waiting (late reply after a timeout, or
        an unknown id); the message is then dropped.
        """
        correlation_id = message.properties.correlation_id
        if correlation_id is None:
            logger.warning("Discarding reply without correlation id: %r", message)
            return False
        with self._lock:
            future = self._waiters.pop(correlation_id, None)
        if future is None:
            logger.warning(
                "Discarding reply for unknown or expired correlation id %s",
                correlation_id,
            )
            return False
        future.get_loop().call_soon_threadsafe(_resolve, future, message)
        return True

    def discard(self, correlation_id: str) -> None:
        """Remove the entry for *correlation_id* if still present."""
        with self._lock:
            future = self._waiters.pop(correlation_id, None)
        if future is not None and not future.done():
            future.cancel()

    def __contains__(self, correlation_id: object) -> bool:
        with self._lock:
            return correlation_id in self._waiters

    def __len__(self) -> int:
        with self._lock:
            return len(self._waiters)
