"""Mapping between :class:`Message` and aio-pika messages."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aio_pika

from ..message import DeliveryMode, Message, MessageProperties

if TYPE_CHECKING:
    from aio_pika.abc import AbstractIncomingMessage


def to_outgoing(message: Message) -> aio_pika.Message:
    """Build an aio-pika message; ``None`` header values are dropped."""
    props = message.properties
    return aio_pika.Message(
        body=message.body,
        headers={k: v for k, v in props.headers.items() if v is not None},
        content_type=props.content_type,
        content_encoding=props.content_encoding,
        delivery_mode=aio_pika.DeliveryMode(int(props.delivery_mode)),
        priority=props.priority,
        correlation_id=props.correlation_id,
        reply_to=props.reply_to,
        # AMQP expiration is milliseconds; aio-pika takes seconds
        expiration=int(props.expiration) / 1000 if props.expiration else None,
        message_id=props.message_id,
        timestamp=props.timestamp,
        type=props.type,
        app_id=props.app_id,
    )


def from_incoming(incoming: AbstractIncomingMessage, queue: str) -> Message:
    """Build a :class:`Message` carrying the inbound delivery fields."""
    expiration = incoming.expiration
    delivery_mode = incoming.delivery_mode
    properties = MessageProperties(
        content_type=incoming.content_type or MessageProperties().content_type,
        content_encoding=incoming.content_encoding,
        headers=dict(incoming.headers or {}),
        delivery_mode=(
            DeliveryMode(int(delivery_mode))
            if delivery_mode
            else DeliveryMode.NON_PERSISTENT
        ),
        priority=incoming.priority,
        correlation_id=incoming.correlation_id,
        reply_to=incoming.reply_to,
        message_id=incoming.message_id,
        timestamp=incoming.timestamp,
        type=incoming.type,
        app_id=incoming.app_id,
        expiration=str(int(expiration * 1000)) if expiration is not None else None,
        delivery_tag=incoming.delivery_tag,
        redelivered=incoming.redelivered,
        received_exchange=incoming.exchange,
        received_routing_key=incoming.routing_key,
        consumer_queue=queue,
    )
    return Message(body=incoming.body, properties=properties)
