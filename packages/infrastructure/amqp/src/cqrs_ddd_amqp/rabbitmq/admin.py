"""RabbitMQAdmin — IProvisioner declaring topology through aio-pika."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aio_pika.exceptions import AMQPError

from ..exceptions import TransportError

if TYPE_CHECKING:
    from ..topology import Binding, Exchange, Queue
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger("cqrs_ddd_amqp.rabbitmq")


class RabbitMQAdmin:
    """Declares exchanges, queues and bindings on the shared channel."""

    def __init__(self, connection: RabbitMQConnectionManager) -> None:
        self._connection = connection

    async def declare_exchange(self, exchange: Exchange) -> None:
        channel = await self._connection.get_channel()
        try:
            await channel.declare_exchange(
                exchange.name,
                type=exchange.type,
                durable=exchange.durable,
                auto_delete=exchange.auto_delete,
                arguments=dict(exchange.arguments) or None,
            )
        except AMQPError as e:
            raise TransportError(
                f"Declare exchange {exchange.name!r} failed: {e}"
            ) from e
        logger.debug("Declared exchange %s (%s)", exchange.name, exchange.type)

    async def declare_queue(self, queue: Queue) -> str:
        channel = await self._connection.get_channel()
        try:
            declared = await channel.declare_queue(
                queue.name or None,
                durable=queue.durable,
                exclusive=queue.exclusive,
                auto_delete=queue.auto_delete,
                arguments=dict(queue.arguments) or None,
            )
        except AMQPError as e:
            raise TransportError(f"Declare queue {queue.name!r} failed: {e}") from e
        logger.debug("Declared queue %s", declared.name)
        return declared.name

    async def declare_binding(self, binding: Binding) -> None:
        channel = await self._connection.get_channel()
        try:
            queue = await channel.get_queue(binding.queue, ensure=False)
            await queue.bind(
                binding.exchange,
                routing_key=binding.routing_key,
                arguments=dict(binding.arguments) or None,
            )
        except AMQPError as e:
            raise TransportError(
                f"Bind {binding.queue!r} to {binding.exchange!r} failed: {e}"
            ) from e
