from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ..address import Address
    from ..message import Message

    DeliveryCallback = Callable[[Message, int, str], Awaitable[None]]
    ReplyCallback = Callable[[Message], Awaitable[None]]


@runtime_checkable
class ITransport(Protocol):
    """
    Port for the broker transport (publish, consume, acknowledge).

    Adapters own connections and channels; messages handed across this port
    never reference them.
    """

    async def publish(self, exchange: str, routing_key: str, message: Message) -> None:
        """
        Publish *message* to *exchange* with *routing_key*.

        Raises:
            TransportError: if the channel or connection is unusable.
        """
        ...

    async def ack(self, delivery_tag: int) -> None:
        """Acknowledge the delivery identified by *delivery_tag*."""
        ...

    async def reject(self, delivery_tag: int, requeue: bool) -> None:
        """Reject the delivery; the broker redelivers it when *requeue* is true."""
        ...

    async def consume(
        self,
        queue: str,
        listener_id: str,
        callback: DeliveryCallback,
    ) -> None:
        """
        Start delivering messages from *queue* to *callback*.

        The callback receives ``(message, delivery_tag, listener_id)`` and must
        finish (including its ack/reject) before the next delivery on the same
        consumer is handed over.
        """
        ...

    async def reply_address(self, callback: ReplyCallback) -> Address:
        """
        Create a reply queue consumed by *callback* and return its address.

        Every message arriving on the reply queue is passed to *callback*.
        Callers keep the returned address; each call creates a new queue.
        """
        ...

    async def get(self, queue: str) -> Message | None:
        """Fetch one message from *queue* with auto-ack, or ``None`` if empty."""
        ...

    async def cancel(self) -> None:
        """Stop all consumers started through this transport."""
        ...
