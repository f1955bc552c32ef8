"""Topology value types: Exchange, Queue, Binding, QueueBinding.

Declarations only: nothing here talks to a broker. An ``IProvisioner``
turns them into declare/bind commands.

Argument dicts are the only mutable part of these objects and are not
synchronised; do not mutate them once the topology is shared across tasks or
threads.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from .address import ExchangeType

DEFAULT_EXCHANGE = ""
X_MATCH = "x-match"


def _type_name(exchange_type: ExchangeType | str) -> str:
    if isinstance(exchange_type, ExchangeType):
        return exchange_type.value
    return str(exchange_type)


@dataclass(frozen=True)
class Exchange:
    """A broker exchange.

    ``type`` is one of :class:`ExchangeType` or any non-empty custom type
    string (e.g. ``x-delayed-message``). Equality is structural over all
    fields; the hash ignores ``arguments``.
    """

    name: str
    type: str = ExchangeType.DIRECT.value
    durable: bool = True
    auto_delete: bool = False
    arguments: dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Exchange name must not be empty")
        type_name = _type_name(self.type)
        if not type_name:
            raise ValueError("Exchange type must not be empty")
        object.__setattr__(self, "type", type_name)

    @classmethod
    def direct(cls, name: str, **kwargs: Any) -> Exchange:
        return cls(name, ExchangeType.DIRECT.value, **kwargs)

    @classmethod
    def topic(cls, name: str, **kwargs: Any) -> Exchange:
        return cls(name, ExchangeType.TOPIC.value, **kwargs)

    @classmethod
    def fanout(cls, name: str, **kwargs: Any) -> Exchange:
        return cls(name, ExchangeType.FANOUT.value, **kwargs)

    @classmethod
    def headers(cls, name: str, **kwargs: Any) -> Exchange:
        return cls(name, ExchangeType.HEADERS.value, **kwargs)


@dataclass(frozen=True, eq=False)
class Queue:
    """A broker queue.

    An empty ``name`` means the broker assigns one on declare. Such an
    anonymous queue compares and hashes by identity until
    :meth:`with_name` produces a named copy.
    """

    name: str = ""
    durable: bool = True
    exclusive: bool = False
    auto_delete: bool = False
    arguments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def anonymous(cls, **arguments: Any) -> Queue:
        """Server-named queue with the usual transient defaults."""
        return cls(
            "",
            durable=False,
            exclusive=True,
            auto_delete=True,
            arguments=dict(arguments),
        )

    @property
    def is_anonymous(self) -> bool:
        return not self.name

    def with_name(self, name: str) -> Queue:
        """Return a copy carrying the broker-assigned name."""
        return dataclasses.replace(self, name=name, arguments=dict(self.arguments))

    def _key(self) -> tuple[str, bool, bool, bool]:
        return (self.name, self.durable, self.exclusive, self.auto_delete)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Queue):
            return NotImplemented
        if self.is_anonymous or other.is_anonymous:
            return self is other
        return self._key() == other._key() and self.arguments == other.arguments

    def __hash__(self) -> int:
        if self.is_anonymous:
            return id(self)
        return hash(self._key())


@dataclass(frozen=True)
class Binding:
    """Routing rule from an exchange to a queue.

    For ``headers`` exchanges the routing key is unused and the arguments
    (``x-match`` plus header values) drive matching.
    """

    queue: str
    exchange: str
    routing_key: str = ""
    arguments: dict[str, Any] = field(default_factory=dict, hash=False)

    @classmethod
    def of(
        cls,
        queue: Queue | str,
        exchange: Exchange | str,
        routing_key: str = "",
        arguments: dict[str, Any] | None = None,
    ) -> Binding:
        """Build a binding from entities or names."""
        queue_name = queue.name if isinstance(queue, Queue) else queue
        if isinstance(exchange, Exchange):
            exchange_name = exchange.name
            if exchange.type == ExchangeType.HEADERS.value:
                routing_key = ""
        else:
            exchange_name = exchange
        return cls(queue_name, exchange_name, routing_key, dict(arguments or {}))


@dataclass(frozen=True)
class QueueBinding:
    """Declaration bundle: a queue, the exchange it binds to, and the key."""

    queue: Queue
    exchange: Exchange
    routing_key: str = ""
    arguments: dict[str, Any] = field(default_factory=dict, hash=False)

    def binding_for(self, queue_name: str) -> Binding:
        """The binding once the queue's (possibly assigned) name is known."""
        return Binding.of(queue_name, self.exchange, self.routing_key, self.arguments)
