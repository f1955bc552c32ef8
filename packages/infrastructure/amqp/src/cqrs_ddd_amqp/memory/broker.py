"""In-memory broker for tests: routes, queues and acknowledges like AMQP."""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from typing import TYPE_CHECKING

from ..address import Address
from ..exceptions import TransportError
from ..topology import DEFAULT_EXCHANGE, Binding, Exchange, Queue
from .routing import binding_matches

if TYPE_CHECKING:
    from ..message import Message
    from ..ports.transport import DeliveryCallback, ReplyCallback

logger = logging.getLogger("cqrs_ddd_amqp.memory")


class InMemoryBroker:
    """Implements both ``ITransport`` and ``IProvisioner`` without a server.

    Exchanges route with direct, topic, fanout and headers semantics; the
    default exchange ``""`` routes to the queue named by the routing key.
    Each ``consume`` call starts one worker task; workers on the same queue
    compete for messages. A worker awaits its callback before taking the next
    message, so ack ordering per consumer matches a real channel with
    prefetch 1. Unacknowledged messages stay in ``unacked`` until acked or
    rejected.
    """

    def __init__(self) -> None:
        self._exchanges: dict[str, Exchange] = {}
        self._queue_defs: dict[str, Queue] = {}
        self._queues: dict[str, asyncio.Queue[Message]] = {}
        self._bindings: list[Binding] = []
        self._unacked: dict[int, tuple[str, Message]] = {}
        self._tags = itertools.count(1)
        self._consumers: list[asyncio.Task[None]] = []
        self._reply_consumers: list[asyncio.Task[None]] = []
        self._published: list[tuple[str, str, Message]] = []
        self._closed = False

    # ── IProvisioner ─────────────────────────────────────────────

    async def declare_exchange(self, exchange: Exchange) -> None:
        self._ensure_open()
        existing = self._exchanges.get(exchange.name)
        if existing is not None and existing.type != exchange.type:
            raise TransportError(
                f"PRECONDITION_FAILED - inequivalent arg 'type' for exchange "
                f"{exchange.name!r}: received {exchange.type!r} "
                f"but current is {existing.type!r}"
            )
        self._exchanges.setdefault(exchange.name, exchange)

    async def declare_queue(self, queue: Queue) -> str:
        self._ensure_open()
        name = queue.name or f"amq.gen-{uuid.uuid4().hex}"
        if name not in self._queue_defs:
            self._queue_defs[name] = queue.with_name(name) if queue.is_anonymous else queue
            self._queues[name] = asyncio.Queue()
            logger.debug("Declared queue %s", name)
        return name

    async def declare_binding(self, binding: Binding) -> None:
        self._ensure_open()
        if binding.exchange not in self._exchanges:
            raise TransportError(f"NOT_FOUND - no exchange {binding.exchange!r}")
        self._require_queue(binding.queue)
        if binding not in self._bindings:
            self._bindings.append(binding)

    # ── ITransport ───────────────────────────────────────────────

    async def publish(self, exchange: str, routing_key: str, message: Message) -> None:
        self._ensure_open()
        if exchange != DEFAULT_EXCHANGE and exchange not in self._exchanges:
            raise TransportError(f"NOT_FOUND - no exchange {exchange!r}")
        self._published.append((exchange, routing_key, message.copy_message()))

        targets = self._route(exchange, routing_key, message)
        if not targets:
            logger.debug(
                "Unroutable message dropped (exchange=%r, routing_key=%r)",
                exchange,
                routing_key,
            )
        for queue_name in targets:
            delivered = message.copy_message()
            delivered.properties.received_exchange = exchange
            delivered.properties.received_routing_key = routing_key
            delivered.properties.redelivered = False
            self._queues[queue_name].put_nowait(delivered)

    async def consume(
        self,
        queue: str,
        listener_id: str,
        callback: DeliveryCallback,
    ) -> None:
        self._ensure_open()
        self._require_queue(queue)
        task = asyncio.get_running_loop().create_task(
            self._consume_loop(queue, listener_id, callback),
            name=f"amqp-consumer-{listener_id}-{queue}",
        )
        self._consumers.append(task)

    async def ack(self, delivery_tag: int) -> None:
        self._pop_unacked(delivery_tag)

    async def reject(self, delivery_tag: int, requeue: bool) -> None:
        queue_name, message = self._pop_unacked(delivery_tag)
        if requeue:
            message.properties.redelivered = True
            self._queues[queue_name].put_nowait(message)
        else:
            logger.debug("Delivery %s rejected without requeue", delivery_tag)

    async def reply_address(self, callback: ReplyCallback) -> Address:
        name = await self.declare_queue(Queue.anonymous())
        task = asyncio.get_running_loop().create_task(
            self._reply_loop(name, callback), name=f"amqp-reply-{name}"
        )
        self._reply_consumers.append(task)
        return Address.for_queue(name)

    async def get(self, queue: str) -> Message | None:
        self._ensure_open()
        try:
            message = self._require_queue(queue).get_nowait()
        except asyncio.QueueEmpty:
            return None
        message.properties.consumer_queue = queue
        return message

    async def cancel(self) -> None:
        """Stop listener consumers; reply consumers keep running until close()."""
        await _cancel_all(self._consumers)

    async def close(self) -> None:
        await _cancel_all(self._consumers)
        await _cancel_all(self._reply_consumers)
        self._closed = True

    # ── Inspection (tests) ───────────────────────────────────────

    @property
    def exchanges(self) -> dict[str, Exchange]:
        return dict(self._exchanges)

    @property
    def queues(self) -> dict[str, Queue]:
        return dict(self._queue_defs)

    @property
    def bindings(self) -> list[Binding]:
        return list(self._bindings)

    @property
    def unacked(self) -> int:
        return len(self._unacked)

    def message_count(self, queue: str) -> int:
        """Messages ready in *queue* (excludes unacked deliveries)."""
        return self._require_queue(queue).qsize()

    def get_published(self) -> list[tuple[str, str, Message]]:
        """Return all published (exchange, routing_key, message) in order."""
        return list(self._published)

    # ── Internals ────────────────────────────────────────────────

    def _route(self, exchange: str, routing_key: str, message: Message) -> list[str]:
        if exchange == DEFAULT_EXCHANGE:
            return [routing_key] if routing_key in self._queues else []
        exchange_type = self._exchanges[exchange].type
        headers = message.properties.headers
        targets: list[str] = []
        for binding in self._bindings:
            if binding.exchange != exchange or binding.queue in targets:
                continue
            if binding_matches(exchange_type, binding, routing_key, headers):
                targets.append(binding.queue)
        return targets

    async def _consume_loop(
        self,
        queue: str,
        listener_id: str,
        callback: DeliveryCallback,
    ) -> None:
        source = self._queues[queue]
        while True:
            message = await source.get()
            tag = next(self._tags)
            self._unacked[tag] = (queue, message)
            delivered = message.copy_message()
            delivered.properties.delivery_tag = tag
            delivered.properties.consumer_queue = queue
            try:
                await callback(delivered, tag, listener_id)
            except Exception:
                logger.exception(
                    "Consumer callback for listener %s failed on delivery %s",
                    listener_id,
                    tag,
                )
                if tag in self._unacked:
                    await self.reject(tag, requeue=True)
            # let other consumers run between deliveries
            await asyncio.sleep(0)

    async def _reply_loop(self, queue: str, callback: ReplyCallback) -> None:
        source = self._queues[queue]
        while True:
            message = await source.get()
            message.properties.consumer_queue = queue
            try:
                await callback(message)
            except Exception:
                logger.exception("Reply callback for %s failed", queue)

    def _pop_unacked(self, delivery_tag: int) -> tuple[str, Message]:
        try:
            return self._unacked.pop(delivery_tag)
        except KeyError:
            raise TransportError(
                f"PRECONDITION_FAILED - unknown delivery tag {delivery_tag}"
            ) from None

    def _require_queue(self, name: str) -> asyncio.Queue[Message]:
        try:
            return self._queues[name]
        except KeyError:
            raise TransportError(f"NOT_FOUND - no queue {name!r}") from None

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportError("Broker is closed")


async def _cancel_all(tasks: list[asyncio.Task[None]]) -> None:
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    tasks.clear()
