"""RabbitMQ adapters (optional extra: cqrs-ddd-amqp[rabbitmq])."""

from __future__ import annotations

from .admin import RabbitMQAdmin
from .connection import RabbitMQConnectionManager
from .transport import RabbitMQTransport

__all__ = [
    "RabbitMQAdmin",
    "RabbitMQConnectionManager",
    "RabbitMQTransport",
]
