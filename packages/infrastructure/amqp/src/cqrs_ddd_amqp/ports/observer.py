from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..classification import Decision


@runtime_checkable
class IErrorObserver(Protocol):
    """
    Port for observing listener failures (logging, metrics, alerting).

    Called after the acknowledgement decision is made; it cannot change it.
    ``decision`` is ``None`` for reply failures, which never affect the
    acknowledgement of the original delivery.
    """

    async def __call__(
        self,
        error: BaseException,
        decision: Decision | None,
    ) -> None: ...
