"""Listener container, template and in-memory broker working together."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio

from cqrs_ddd_amqp.classification import Decision, iter_causes
from cqrs_ddd_amqp.exceptions import (
    ListenerExecutionFailedError,
    MessageConversionError,
)
from cqrs_ddd_amqp.listener import (
    ListenerContainer,
    ListenerDispatcher,
    ListenerEndpoint,
    ListenerRegistry,
)
from cqrs_ddd_amqp.message import CONTENT_TYPE_TEXT_PLAIN, Message, MessageProperties
from cqrs_ddd_amqp.template import AmqpTemplate
from cqrs_ddd_amqp.topology import Exchange, Queue, QueueBinding

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from cqrs_ddd_amqp.memory import InMemoryBroker

    from .conftest import RecordingObserver

QUEUES = (
    "test.simple",
    "test.header",
    "test.message",
    "test.reply",
    "test.sendTo",
    "test.sendTo.reply",
    "test.invalidPojo",
    "test.flaky",
)


class Service:
    def __init__(self) -> None:
        self.flaky_attempts: list[bool | None] = []

    def capitalize(self, foo: str) -> str:
        return foo.upper()

    def capitalize_with_header(self, content: str, *, prefix: str) -> str:
        return prefix + content.upper()

    def capitalize_with_message(self, message: Message) -> str:
        return message.properties.headers["prefix"] + message.body.decode().upper()

    async def reply(self, payload: str, *, foo: str) -> Message:
        return Message(
            body=payload.encode(),
            properties=MessageProperties(
                content_type=CONTENT_TYPE_TEXT_PLAIN,
                headers={"foo": foo, "bar": "barValue"},
            ),
        )

    def handle_it(self, body: datetime) -> None:
        return None

    def flaky(self, message: Message) -> str:
        self.flaky_attempts.append(message.properties.redelivered)
        if len(self.flaky_attempts) == 1:
            raise TimeoutError("downstream not ready")
        return "done"


def _endpoints(service: Service) -> list[ListenerEndpoint]:
    auto_exch = Exchange.direct("auto.exch", auto_delete=True)
    return [
        ListenerEndpoint(
            "auto",
            service.capitalize,
            bindings=(
                QueueBinding(Queue("auto.declare", auto_delete=True), auto_exch, "auto.rk"),
            ),
        ),
        ListenerEndpoint(
            "auto.anon",
            service.capitalize,
            bindings=(QueueBinding(Queue.anonymous(), auto_exch, "auto.anon.rk"),),
        ),
        ListenerEndpoint("simple", service.capitalize, queues=("test.simple",)),
        ListenerEndpoint(
            "header",
            service.capitalize_with_header,
            queues=("test.header",),
            headers=("prefix",),
        ),
        ListenerEndpoint(
            "message",
            service.capitalize_with_message,
            queues=("test.message",),
            payload_type=Message,
        ),
        ListenerEndpoint(
            "reply", service.reply, queues=("test.reply",), headers=("foo",)
        ),
        ListenerEndpoint(
            "sendTo",
            service.capitalize,
            queues=("test.sendTo",),
            reply_to="test.sendTo.reply",
            concurrency=2,
        ),
        ListenerEndpoint(
            "invalidPojo",
            service.handle_it,
            queues=("test.invalidPojo",),
            payload_type=datetime,
        ),
        ListenerEndpoint(
            "flaky",
            service.flaky,
            queues=("test.flaky",),
            payload_type=Message,
            reply_to="test.sendTo.reply",
        ),
    ]


@pytest.fixture
def service() -> Service:
    return Service()


@pytest_asyncio.fixture
async def container(
    broker: InMemoryBroker,
    service: Service,
    observer: RecordingObserver,
) -> AsyncIterator[ListenerContainer]:
    for name in QUEUES:
        await broker.declare_queue(Queue(name))
    registry = ListenerRegistry()
    for endpoint in _endpoints(service):
        registry.register(endpoint)
    dispatcher = ListenerDispatcher(
        registry, AmqpTemplate(broker), error_observer=observer
    )
    c = ListenerContainer(broker, registry, dispatcher, provisioner=broker)
    await c.start()
    yield c
    await c.stop()


async def _eventually(predicate: Any, timeout: float = 1.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


async def _receive_eventually(template: AmqpTemplate, queue: str) -> Any:
    for _ in range(20):
        result = await template.receive_and_convert(queue)
        if result is not None:
            return result
        await asyncio.sleep(0.05)
    return None


@pytest.mark.asyncio
async def test_simple_endpoint(
    container: ListenerContainer, template: AmqpTemplate
) -> None:
    reply = await template.convert_send_and_receive("foo", routing_key="test.simple")
    assert reply == "FOO"


@pytest.mark.asyncio
async def test_auto_declare(
    container: ListenerContainer,
    template: AmqpTemplate,
    broker: InMemoryBroker,
) -> None:
    assert "auto.declare" in broker.queues
    assert broker.exchanges["auto.exch"].auto_delete is True
    assert (
        await template.convert_send_and_receive(
            "foo", exchange="auto.exch", routing_key="auto.rk"
        )
        == "FOO"
    )


@pytest.mark.asyncio
async def test_auto_declare_anonymous(
    container: ListenerContainer,
    template: AmqpTemplate,
    broker: InMemoryBroker,
) -> None:
    anon = [b.queue for b in broker.bindings if b.routing_key == "auto.anon.rk"]
    assert len(anon) == 1
    assert anon[0].startswith("amq.gen-")
    assert (
        await template.convert_send_and_receive(
            "foo", exchange="auto.exch", routing_key="auto.anon.rk"
        )
        == "FOO"
    )


@pytest.mark.asyncio
async def test_endpoint_with_header(
    container: ListenerContainer, template: AmqpTemplate
) -> None:
    request = template.converter.to_message(
        "foo", MessageProperties(headers={"prefix": "prefix-"})
    )
    reply = await template.send_and_receive(request, routing_key="test.header")
    assert reply is not None
    assert reply.body.decode() == "prefix-FOO"


@pytest.mark.asyncio
async def test_endpoint_with_message(
    container: ListenerContainer, template: AmqpTemplate
) -> None:
    request = template.converter.to_message(
        "foo", MessageProperties(headers={"prefix": "prefix-"})
    )
    reply = await template.send_and_receive(request, routing_key="test.message")
    assert reply is not None
    assert reply.body.decode() == "prefix-FOO"


@pytest.mark.asyncio
async def test_endpoint_with_complex_reply(
    container: ListenerContainer, template: AmqpTemplate
) -> None:
    request = template.converter.to_message(
        "content", MessageProperties(headers={"foo": "fooValue"})
    )
    reply = await template.send_and_receive(request, routing_key="test.reply")
    assert reply is not None
    assert reply.body.decode() == "content"
    assert reply.properties.headers["foo"] == "fooValue"
    assert reply.properties.headers["bar"] == "barValue"
    assert reply.properties.correlation_id is not None


@pytest.mark.asyncio
async def test_simple_endpoint_with_send_to(
    container: ListenerContainer, template: AmqpTemplate
) -> None:
    await template.convert_and_send("bar", routing_key="test.sendTo")
    assert await _receive_eventually(template, "test.sendTo.reply") == "BAR"


@pytest.mark.asyncio
async def test_invalid_payload_conversion_is_discarded(
    container: ListenerContainer,
    template: AmqpTemplate,
    broker: InMemoryBroker,
    observer: RecordingObserver,
) -> None:
    await template.convert_and_send("bar", routing_key="test.invalidPojo")
    await _eventually(lambda: observer.calls)

    [(error, decision)] = observer.calls
    assert decision is Decision.DISCARD
    assert isinstance(error, ListenerExecutionFailedError)
    assert error.listener_id == "invalidPojo"
    assert error.failed_message.body == b"bar"
    assert isinstance(error.__cause__, MessageConversionError)
    assert "Failed to convert message payload 'bar' to 'datetime'" in str(
        error.__cause__
    )
    root = list(iter_causes(error))[-1]
    assert isinstance(root, MessageConversionError)
    assert "Failed to convert message payload 'bar'" in str(root)
    await _eventually(lambda: broker.unacked == 0)
    assert broker.message_count("test.invalidPojo") == 0


@pytest.mark.asyncio
async def test_transient_failure_is_redelivered(
    container: ListenerContainer,
    template: AmqpTemplate,
    service: Service,
    observer: RecordingObserver,
) -> None:
    await template.convert_and_send("x", routing_key="test.flaky")
    await _eventually(lambda: len(service.flaky_attempts) == 2)
    assert service.flaky_attempts == [False, True]
    [(_, decision)] = observer.calls
    assert decision is Decision.REQUEUE
    assert await _receive_eventually(template, "test.sendTo.reply") == "done"


@pytest.mark.asyncio
async def test_concurrent_requests_are_correlated(
    container: ListenerContainer, template: AmqpTemplate
) -> None:
    words = [f"word-{i}" for i in range(20)]
    replies = await asyncio.gather(
        *(
            template.convert_send_and_receive(word, routing_key="test.simple")
            for word in words
        )
    )
    assert replies == [word.upper() for word in words]
    assert len(template.pending) == 0
