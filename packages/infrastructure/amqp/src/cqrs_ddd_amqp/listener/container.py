"""ListenerContainer — connect registered endpoints to a transport."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..classification import Acknowledgement

if TYPE_CHECKING:
    from ..message import Message
    from ..ports.provisioner import IProvisioner
    from ..ports.transport import ITransport
    from .dispatcher import ListenerDispatcher
    from .registry import ListenerRegistry

logger = logging.getLogger("cqrs_ddd_amqp.listener")


class ListenerContainer:
    """Start consumers for every endpoint and apply acknowledgement decisions.

    Each delivery is dispatched and then acked or rejected before the
    callback returns, so a transport that waits for the callback preserves
    in-order acknowledgement per consumer.
    """

    def __init__(
        self,
        transport: ITransport,
        registry: ListenerRegistry,
        dispatcher: ListenerDispatcher,
        *,
        provisioner: IProvisioner | None = None,
    ) -> None:
        """Configure the container.

        Args:
            transport: Delivers messages and receives ack/reject calls.
            registry: Endpoints to start.
            dispatcher: Produces the acknowledgement for each delivery.
            provisioner: If set, endpoint bindings are declared on start().
        """
        self._transport = transport
        self._registry = registry
        self._dispatcher = dispatcher
        self._provisioner = provisioner
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Declare bindings (when a provisioner is set) and start consuming.

        If any declaration or consumer fails, consumers started so far are
        cancelled before the error propagates.
        """
        if self._running:
            return
        try:
            if self._provisioner is not None:
                await self._registry.declare(self._provisioner)
            for endpoint in self._registry:
                for queue in self._registry.queues_for(endpoint.id):
                    for _ in range(endpoint.concurrency):
                        await self._transport.consume(
                            queue, endpoint.id, self._on_delivery
                        )
                    logger.info(
                        "Listener %s consuming %s (concurrency=%d)",
                        endpoint.id,
                        queue,
                        endpoint.concurrency,
                    )
        except BaseException:
            logger.error("ListenerContainer failed to start; cancelling consumers")
            await self._transport.cancel()
            raise
        self._running = True

    async def stop(self) -> None:
        """Cancel all consumers."""
        if not self._running:
            return
        self._running = False
        await self._transport.cancel()
        logger.info("ListenerContainer stopped")

    async def _on_delivery(
        self,
        message: Message,
        delivery_tag: int,
        listener_id: str,
    ) -> None:
        try:
            ack = await self._dispatcher.dispatch(message, delivery_tag, listener_id)
        except Exception:
            logger.exception(
                "Dispatch of delivery %s for listener %s failed; discarding",
                delivery_tag,
                listener_id,
            )
            ack = Acknowledgement.REJECT_NO_REQUEUE
        if ack is Acknowledgement.ACK:
            await self._transport.ack(delivery_tag)
        else:
            await self._transport.reject(
                delivery_tag, requeue=ack is Acknowledgement.REJECT_REQUEUE
            )
