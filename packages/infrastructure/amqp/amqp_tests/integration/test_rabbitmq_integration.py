"""Integration tests for the RabbitMQ adapters (require aio-pika and testcontainers)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

pytest.importorskip("aio_pika")
pytest.importorskip("testcontainers")
pytest.importorskip("pika")  # required by testcontainers.rabbitmq

from testcontainers.rabbitmq import RabbitMqContainer

from cqrs_ddd_amqp.listener import (
    ListenerContainer,
    ListenerDispatcher,
    ListenerEndpoint,
    ListenerRegistry,
)
from cqrs_ddd_amqp.rabbitmq import (
    RabbitMQAdmin,
    RabbitMQConnectionManager,
    RabbitMQTransport,
)
from cqrs_ddd_amqp.template import AmqpTemplate
from cqrs_ddd_amqp.topology import Exchange, Queue, QueueBinding

if TYPE_CHECKING:
    from collections.abc import Iterator

pytestmark = pytest.mark.integration


def _rabbitmq_url_from_params(params: object) -> str:
    """Build amqp URL from pika connection params (e.g. from get_connection_params())."""
    host = getattr(params, "host", "localhost")
    port = getattr(params, "port", 5672)
    creds = getattr(params, "credentials", None)
    if creds is not None:
        user = getattr(creds, "username", "guest")
        pwd = getattr(creds, "password", "guest")
    else:
        user, pwd = "guest", "guest"
    return f"amqp://{user}:{pwd}@{host}:{port}/"


@pytest.fixture(scope="module")
def rabbitmq_url() -> Iterator[str]:
    with RabbitMqContainer("rabbitmq:3-management") as rabbit:
        yield _rabbitmq_url_from_params(rabbit.get_connection_params())


@pytest.mark.asyncio
async def test_request_reply_through_rabbitmq(rabbitmq_url: str) -> None:
    conn = RabbitMQConnectionManager(url=rabbitmq_url)
    await conn.connect()
    transport = RabbitMQTransport(conn)
    try:
        admin = RabbitMQAdmin(conn)
        await admin.declare_queue(Queue("test.simple", auto_delete=True))
        registry = ListenerRegistry()
        registry.register(ListenerEndpoint("simple", str.upper, queues=("test.simple",)))
        registry.register(
            ListenerEndpoint(
                "auto.anon",
                str.upper,
                bindings=(
                    QueueBinding(
                        Queue.anonymous(),
                        Exchange.direct("auto.exch", auto_delete=True),
                        "auto.anon.rk",
                    ),
                ),
            )
        )
        template = AmqpTemplate(transport, reply_timeout=10.0)
        container = ListenerContainer(
            transport,
            registry,
            ListenerDispatcher(registry, AmqpTemplate(transport)),
            provisioner=admin,
        )
        await container.start()

        assert (
            await template.convert_send_and_receive("foo", routing_key="test.simple")
            == "FOO"
        )
        assert (
            await template.convert_send_and_receive(
                "foo", exchange="auto.exch", routing_key="auto.anon.rk"
            )
            == "FOO"
        )
        assert len(template.pending) == 0
        await container.stop()
    finally:
        await transport.close()
        await conn.close()
