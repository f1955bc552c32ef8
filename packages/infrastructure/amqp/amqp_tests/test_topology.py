"""Tests for Exchange, Queue, Binding and QueueBinding."""

from __future__ import annotations

import pytest

from cqrs_ddd_amqp.address import ExchangeType
from cqrs_ddd_amqp.topology import Binding, Exchange, Queue, QueueBinding


def test_exchange_defaults() -> None:
    ex = Exchange("orders")
    assert ex.type == "direct"
    assert ex.durable is True
    assert ex.auto_delete is False
    assert ex.arguments == {}


def test_exchange_type_from_enum_is_stored_as_string() -> None:
    assert Exchange("e", ExchangeType.TOPIC).type == "topic"
    assert Exchange.headers("h").type == "headers"
    assert Exchange("d", "x-delayed-message").type == "x-delayed-message"


@pytest.mark.parametrize(("name", "type_"), [("", "direct"), ("ex", "")])
def test_exchange_requires_name_and_type(name: str, type_: str) -> None:
    with pytest.raises(ValueError):
        Exchange(name, type_)


def test_exchange_equality_and_hash() -> None:
    a = Exchange.topic("events", arguments={"alternate-exchange": "ae"})
    b = Exchange.topic("events", arguments={"alternate-exchange": "ae"})
    assert a == b
    assert hash(a) == hash(b)
    assert a != Exchange.topic("events")
    assert hash(a) == hash(Exchange.topic("events"))


def test_exchange_arguments_mutable_in_place() -> None:
    ex = Exchange.fanout("f")
    ex.arguments["x-custom"] = 1
    assert ex.arguments == {"x-custom": 1}
    with pytest.raises(AttributeError):
        ex.name = "other"  # type: ignore[misc]


def test_named_queue_structural_equality() -> None:
    assert Queue("q") == Queue("q")
    assert hash(Queue("q")) == hash(Queue("q"))
    assert Queue("q") != Queue("q", durable=False)


def test_anonymous_queue_identity_equality() -> None:
    a = Queue.anonymous()
    b = Queue.anonymous()
    assert a.is_anonymous
    assert a == a
    assert a != b
    assert len({a, b}) == 2
    assert a.durable is False
    assert a.exclusive is True
    assert a.auto_delete is True


def test_with_name_produces_named_copy() -> None:
    anonymous = Queue.anonymous()
    named = anonymous.with_name("amq.gen-1")
    assert named.name == "amq.gen-1"
    assert not named.is_anonymous
    assert named.exclusive is True
    assert named == anonymous.with_name("amq.gen-1")
    assert anonymous.is_anonymous


def test_binding_of_entities() -> None:
    binding = Binding.of(Queue("q"), Exchange.direct("ex"), "key")
    assert binding == Binding("q", "ex", "key")


def test_binding_drops_routing_key_for_headers_exchange() -> None:
    binding = Binding.of(
        "q", Exchange.headers("h"), "ignored", {"x-match": "any", "a": "1"}
    )
    assert binding.routing_key == ""
    assert binding.arguments == {"x-match": "any", "a": "1"}


def test_queue_binding_binding_for_assigned_name() -> None:
    qb = QueueBinding(Queue.anonymous(), Exchange.direct("auto.exch"), "auto.rk")
    assert qb.binding_for("amq.gen-xyz") == Binding(
        "amq.gen-xyz", "auto.exch", "auto.rk"
    )
