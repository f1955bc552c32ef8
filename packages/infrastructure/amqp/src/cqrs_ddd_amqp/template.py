"""AmqpTemplate — send, receive and request/reply over an ITransport."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .address import Address
from .conversion import SimpleMessageConverter
from .correlation import PendingReplies, generate_correlation_id
from .instrumentation import get_hook_registry

if TYPE_CHECKING:
    from .message import Message, MessageProperties
    from .ports.conversion import IMessageConverter
    from .ports.transport import ITransport

logger = logging.getLogger("cqrs_ddd_amqp.template")

DEFAULT_REPLY_TIMEOUT = 5.0


class AmqpTemplate:
    """Synchronous-style messaging facade.

    Destinations are given either as ``address=`` (an :class:`Address` or
    its text) or as ``exchange=`` / ``routing_key=``; anything left out falls
    back to the template defaults. A plain ``routing_key`` with the default
    exchange ``""`` addresses a queue by name.

    The only shared mutable state is the :class:`PendingReplies` registry, so
    one template can serve many concurrent tasks.
    """

    def __init__(
        self,
        transport: ITransport,
        *,
        converter: IMessageConverter | None = None,
        exchange: str = "",
        routing_key: str = "",
        default_queue: str | None = None,
        reply_timeout: float = DEFAULT_REPLY_TIMEOUT,
        pending: PendingReplies | None = None,
    ) -> None:
        """Configure the template.

        Args:
            transport: Publishes and consumes on behalf of the template.
            converter: Payload codec; default SimpleMessageConverter().
            exchange: Default exchange for sends.
            routing_key: Default routing key for sends.
            default_queue: Queue used by receive() when none is given.
            reply_timeout: Seconds to wait for a reply when no timeout is passed.
            pending: Correlation registry; a private one is created if omitted.
        """
        if reply_timeout <= 0:
            raise ValueError("reply_timeout must be > 0")
        self._transport = transport
        self._converter = converter or SimpleMessageConverter()
        self._exchange = exchange
        self._routing_key = routing_key
        self._default_queue = default_queue
        self._reply_timeout = reply_timeout
        self._pending = pending or PendingReplies()
        self._reply_address: Address | None = None
        self._reply_lock = asyncio.Lock()

    @property
    def converter(self) -> IMessageConverter:
        return self._converter

    @property
    def pending(self) -> PendingReplies:
        return self._pending

    # ── Destination resolution ───────────────────────────────────

    def resolve(
        self,
        *,
        address: Address | str | None = None,
        exchange: str | None = None,
        routing_key: str | None = None,
    ) -> tuple[str, str]:
        """Return ``(exchange, routing_key)`` for the given destination."""
        if address is not None:
            if exchange is not None or routing_key is not None:
                raise ValueError("Pass either address or exchange/routing_key, not both")
            if isinstance(address, str):
                address = Address.parse(address)
            return address.exchange_name, address.routing_key
        return (
            self._exchange if exchange is None else exchange,
            self._routing_key if routing_key is None else routing_key,
        )

    # ── Send ─────────────────────────────────────────────────────

    async def send(
        self,
        message: Message,
        *,
        address: Address | str | None = None,
        exchange: str | None = None,
        routing_key: str | None = None,
    ) -> None:
        """Publish *message*. Transport failures propagate as TransportError."""
        exchange_name, key = self.resolve(
            address=address, exchange=exchange, routing_key=routing_key
        )
        attributes = {
            "amqp.exchange": exchange_name,
            "amqp.routing_key": key,
            "correlation_id": message.properties.correlation_id,
        }
        await get_hook_registry().execute_all(
            "amqp.send",
            attributes,
            lambda: self._transport.publish(exchange_name, key, message),
        )

    async def convert_and_send(
        self,
        payload: Any,
        *,
        address: Address | str | None = None,
        exchange: str | None = None,
        routing_key: str | None = None,
        properties: MessageProperties | None = None,
        headers: dict[str, Any] | None = None,
    ) -> None:
        """Encode *payload* and publish it. Conversion errors fail before publishing."""
        message = self._to_message(payload, properties, headers)
        await self.send(
            message, address=address, exchange=exchange, routing_key=routing_key
        )

    # ── Request / reply ──────────────────────────────────────────

    async def send_and_receive(
        self,
        message: Message,
        *,
        address: Address | str | None = None,
        exchange: str | None = None,
        routing_key: str | None = None,
        timeout: float | None = None,
    ) -> Message | None:
        """Publish *message* and wait for the correlated reply.

        Returns ``None`` if no reply arrives within *timeout* seconds. The
        caller's message is left untouched; a copy carrying the correlation
        id and ``reply_to`` is published. Cancelling the awaiting task
        aborts the wait and propagates ``asyncio.CancelledError``.
        """
        exchange_name, key = self.resolve(
            address=address, exchange=exchange, routing_key=routing_key
        )
        reply_to = await self._ensure_reply_address()
        request = message.copy_message()
        correlation_id = request.properties.correlation_id or generate_correlation_id()
        request.properties.correlation_id = correlation_id
        request.properties.reply_to = str(reply_to)
        wait = self._reply_timeout if timeout is None else timeout

        attributes = {
            "amqp.exchange": exchange_name,
            "amqp.routing_key": key,
            "correlation_id": correlation_id,
        }

        async def _exchange() -> Message | None:
            future = self._pending.register(correlation_id)
            # registered before publishing so an early reply is not lost
            try:
                await self._transport.publish(exchange_name, key, request)
                return await asyncio.wait_for(future, wait)
            except asyncio.TimeoutError:
                logger.warning(
                    "No reply within %.2fs for correlation id %s (%s/%s)",
                    wait,
                    correlation_id,
                    exchange_name,
                    key,
                )
                return None
            finally:
                self._pending.discard(correlation_id)

        return await get_hook_registry().execute_all(
            "amqp.send_and_receive", attributes, _exchange
        )

    async def convert_send_and_receive(
        self,
        payload: Any,
        *,
        address: Address | str | None = None,
        exchange: str | None = None,
        routing_key: str | None = None,
        properties: MessageProperties | None = None,
        headers: dict[str, Any] | None = None,
        timeout: float | None = None,
        reply_type: Any = None,
    ) -> Any:
        """Encode *payload*, send it and decode the reply.

        Returns ``None`` on timeout. A reply that cannot be decoded raises
        MessageConversionError to the caller.
        """
        request = self._to_message(payload, properties, headers)
        reply = await self.send_and_receive(
            request,
            address=address,
            exchange=exchange,
            routing_key=routing_key,
            timeout=timeout,
        )
        if reply is None:
            return None
        return self._converter.from_message(reply, reply_type)

    async def _ensure_reply_address(self) -> Address:
        if self._reply_address is None:
            async with self._reply_lock:
                if self._reply_address is None:
                    self._reply_address = await self._transport.reply_address(
                        self._on_reply
                    )
        return self._reply_address

    async def _on_reply(self, message: Message) -> None:
        self._pending.complete(message)

    # ── Receive ──────────────────────────────────────────────────

    async def receive(self, queue: str | None = None) -> Message | None:
        """Fetch one message from *queue* (or the default queue), ``None`` if empty."""
        name = queue or self._default_queue
        if not name:
            raise ValueError("No queue given and no default_queue configured")
        return await self._transport.get(name)

    async def receive_and_convert(
        self,
        queue: str | None = None,
        target_type: Any = None,
    ) -> Any:
        message = await self.receive(queue)
        if message is None:
            return None
        return self._converter.from_message(message, target_type)

    def _to_message(
        self,
        payload: Any,
        properties: MessageProperties | None,
        headers: dict[str, Any] | None,
    ) -> Message:
        message = self._converter.to_message(payload, properties)
        if headers:
            message.properties.headers.update(headers)
        return message
