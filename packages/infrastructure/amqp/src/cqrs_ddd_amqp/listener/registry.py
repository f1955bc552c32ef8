"""ListenerRegistry — listener id -> endpoint, plus topology declaration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import ListenerRegistrationError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..ports.provisioner import IProvisioner
    from .endpoint import ListenerEndpoint

logger = logging.getLogger("cqrs_ddd_amqp.listener")


class ListenerRegistry:
    """Explicitly populated mapping of listener ids to endpoints.

    **Conflict detection:** registering a second endpoint under an existing
    id raises :class:`ListenerRegistrationError`.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, ListenerEndpoint] = {}
        self._declared: dict[str, list[str]] = {}

    def register(self, endpoint: ListenerEndpoint) -> ListenerEndpoint:
        existing = self._endpoints.get(endpoint.id)
        if existing is not None and existing is not endpoint:
            raise ListenerRegistrationError(
                f"Duplicate listener id {endpoint.id!r}: "
                f"{existing.handler_name} already registered, "
                f"cannot register {endpoint.handler_name}"
            )
        self._endpoints[endpoint.id] = endpoint
        logger.debug(
            "Registered listener %s -> %s", endpoint.id, endpoint.handler_name
        )
        return endpoint

    def get(self, listener_id: str) -> ListenerEndpoint:
        """Return the endpoint for *listener_id*.

        Raises:
            KeyError: if no endpoint is registered under that id.
        """
        return self._endpoints[listener_id]

    def __contains__(self, listener_id: object) -> bool:
        return listener_id in self._endpoints

    def __iter__(self) -> Iterator[ListenerEndpoint]:
        return iter(list(self._endpoints.values()))

    def __len__(self) -> int:
        return len(self._endpoints)

    def queues_for(self, listener_id: str) -> list[str]:
        """Configured queues followed by queues declared through bindings."""
        endpoint = self.get(listener_id)
        queues = list(endpoint.queues)
        for name in self._declared.get(listener_id, []):
            if name not in queues:
                queues.append(name)
        return queues

    async def declare(self, provisioner: IProvisioner) -> None:
        """Declare every endpoint's bindings (exchange, queue, binding).

        Anonymous queues get their broker-assigned names recorded so that
        :meth:`queues_for` includes them.
        """
        for endpoint in self:
            declared: list[str] = []
            for queue_binding in endpoint.bindings:
                await provisioner.declare_exchange(queue_binding.exchange)
                name = await provisioner.declare_queue(queue_binding.queue)
                await provisioner.declare_binding(queue_binding.binding_for(name))
                declared.append(name)
                logger.info(
                    "Declared %s -> %s (%s) for listener %s",
                    queue_binding.exchange.name,
                    name,
                    queue_binding.routing_key or "<no key>",
                    endpoint.id,
                )
            self._declared[endpoint.id] = declared
