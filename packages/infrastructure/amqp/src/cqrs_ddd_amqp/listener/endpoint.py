"""ListenerEndpoint — explicit description of one message listener."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..address import Address
    from ..topology import QueueBinding


@dataclass
class ListenerEndpoint:
    """Binds a handler to the queues it consumes.

    Args:
        id: Unique listener id, reported with every failure.
        handler: Sync or async callable. Receives the converted payload as its
            first argument and one keyword argument per name in ``headers``.
        queues: Existing queues to consume from.
        bindings: Topology to declare before consuming; the (possibly
            broker-assigned) queue names are added to the consumed queues.
        payload_type: Target type for the body; ``Message`` passes the raw
            message, ``None`` passes whatever the converter decodes.
        headers: Header names bound to keyword arguments of the handler.
        reply_to: Default reply destination when a request has no
            ``reply_to`` property.
        concurrency: Number of consumers started per queue.
    """

    id: str
    handler: Callable[..., Any]
    queues: tuple[str, ...] = ()
    bindings: tuple[QueueBinding, ...] = ()
    payload_type: Any = None
    headers: tuple[str, ...] = ()
    reply_to: Address | str | None = None
    concurrency: int = 1

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Listener id must not be empty")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if not self.queues and not self.bindings:
            raise ValueError(f"Listener {self.id!r} needs queues or bindings")
        self.queues = tuple(self.queues)
        self.bindings = tuple(self.bindings)
        self.headers = tuple(self.headers)

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", None) or repr(self.handler)
