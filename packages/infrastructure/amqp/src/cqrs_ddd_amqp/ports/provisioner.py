from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..topology import Binding, Exchange, Queue


@runtime_checkable
class IProvisioner(Protocol):
    """
    Port for declaring topology on the broker.

    Declarations are idempotent from the caller's point of view; callers do
    not retry them.
    """

    async def declare_exchange(self, exchange: Exchange) -> None: ...

    async def declare_queue(self, queue: Queue) -> str:
        """Declare *queue* and return its name (broker-assigned when anonymous)."""
        ...

    async def declare_binding(self, binding: Binding) -> None: ...
