"""RabbitMQTransport — ITransport over one aio-pika channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aio_pika.exceptions import AMQPError

from ..address import Address
from ..exceptions import TransportError
from ..topology import DEFAULT_EXCHANGE
from .codec import from_incoming, to_outgoing

if TYPE_CHECKING:
    from aio_pika.abc import AbstractExchange, AbstractIncomingMessage, AbstractQueue

    from ..message import Message
    from ..ports.transport import DeliveryCallback, ReplyCallback
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger("cqrs_ddd_amqp.rabbitmq")


class RabbitMQTransport:
    """RabbitMQ adapter implementing ITransport.

    Deliveries are consumed with manual acknowledgement; the incoming aio-pika
    message is held by delivery tag until ``ack`` or ``reject`` is called.
    Reply queues are exclusive, server-named and consumed with auto-ack.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        mandatory: bool = False,
    ) -> None:
        """Configure transport.

        Args:
            connection: Shared connection manager.
            mandatory: Publish with the mandatory flag (unroutable messages
                are returned by the broker).
        """
        self._connection = connection
        self._mandatory = mandatory
        self._incoming: dict[int, AbstractIncomingMessage] = {}
        self._consumers: list[tuple[AbstractQueue, str]] = []
        self._reply_consumers: list[tuple[AbstractQueue, str]] = []

    async def publish(self, exchange: str, routing_key: str, message: Message) -> None:
        try:
            target = await self._exchange(exchange)
            await target.publish(
                to_outgoing(message),
                routing_key=routing_key,
                mandatory=self._mandatory,
            )
        except (AMQPError, ConnectionError, OSError) as e:
            raise TransportError(
                f"Publish to exchange {exchange!r} with key {routing_key!r} failed: {e}"
            ) from e

    async def consume(
        self,
        queue: str,
        listener_id: str,
        callback: DeliveryCallback,
    ) -> None:
        async def on_message(incoming: AbstractIncomingMessage) -> None:
            message = from_incoming(incoming, queue)
            tag = incoming.delivery_tag
            if tag is None:
                logger.warning("Ignoring delivery without tag on %s", queue)
                return
            self._incoming[tag] = incoming
            try:
                await callback(message, tag, listener_id)
            except Exception:
                logger.exception(
                    "Consumer callback for listener %s failed on delivery %s",
                    listener_id,
                    tag,
                )
                if tag in self._incoming:
                    await self.reject(tag, requeue=True)

        try:
            source = await self._queue(queue)
            consumer_tag = await source.consume(on_message, no_ack=False)
        except (AMQPError, ConnectionError, OSError) as e:
            raise TransportError(f"Consume from queue {queue!r} failed: {e}") from e
        self._consumers.append((source, consumer_tag))

    async def ack(self, delivery_tag: int) -> None:
        incoming = self._pop(delivery_tag)
        try:
            await incoming.ack()
        except (AMQPError, ConnectionError, OSError) as e:
            raise TransportError(f"Ack of delivery {delivery_tag} failed: {e}") from e

    async def reject(self, delivery_tag: int, requeue: bool) -> None:
        incoming = self._pop(delivery_tag)
        try:
            await incoming.reject(requeue=requeue)
        except (AMQPError, ConnectionError, OSError) as e:
            raise TransportError(
                f"Reject of delivery {delivery_tag} failed: {e}"
            ) from e

    async def reply_address(self, callback: ReplyCallback) -> Address:
        try:
            channel = await self._connection.get_channel()
            queue = await channel.declare_queue(
                None, durable=False, exclusive=True, auto_delete=True
            )

            async def on_reply(incoming: AbstractIncomingMessage) -> None:
                try:
                    await callback(from_incoming(incoming, queue.name))
                except Exception:
                    logger.exception("Reply callback for %s failed", queue.name)

            consumer_tag = await queue.consume(on_reply, no_ack=True)
        except (AMQPError, ConnectionError, OSError) as e:
            raise TransportError(f"Reply queue setup failed: {e}") from e
        self._reply_consumers.append((queue, consumer_tag))
        logger.debug("Reply queue %s ready", queue.name)
        return Address.for_queue(queue.name)

    async def get(self, queue: str) -> Message | None:
        try:
            source = await self._queue(queue)
            incoming = await source.get(no_ack=True, fail=False)
        except (AMQPError, ConnectionError, OSError) as e:
            raise TransportError(f"Get from queue {queue!r} failed: {e}") from e
        if incoming is None:
            return None
        return from_incoming(incoming, queue)

    async def cancel(self) -> None:
        """Cancel listener consumers; reply consumers stay until close()."""
        await _cancel_all(self._consumers)

    async def close(self) -> None:
        await _cancel_all(self._consumers)
        await _cancel_all(self._reply_consumers)

    async def _exchange(self, name: str) -> AbstractExchange:
        channel = await self._connection.get_channel()
        if name == DEFAULT_EXCHANGE:
            return channel.default_exchange
        return await channel.get_exchange(name, ensure=False)

    async def _queue(self, name: str) -> AbstractQueue:
        channel = await self._connection.get_channel()
        return await channel.get_queue(name, ensure=False)

    def _pop(self, delivery_tag: int) -> AbstractIncomingMessage:
        try:
            return self._incoming.pop(delivery_tag)
        except KeyError:
            raise TransportError(f"Unknown delivery tag {delivery_tag}") from None


async def _cancel_all(consumers: list[tuple[AbstractQueue, str]]) -> None:
    while consumers:
        queue, consumer_tag = consumers.pop()
        try:
            await queue.cancel(consumer_tag)
        except (AMQPError, ConnectionError, OSError):
            logger.warning(
                "Cancel of consumer %s on %s failed",
                consumer_tag,
                queue.name,
                exc_info=True,
            )
