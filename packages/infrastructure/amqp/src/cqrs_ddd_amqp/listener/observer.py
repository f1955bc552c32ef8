"""Default error observer: log listener and reply failures."""

from __future__ import annotations

import logging

from ..classification import Decision

_logger = logging.getLogger("cqrs_ddd_amqp.listener")


class LoggingErrorObserver:
    """Logs each reported failure with its traceback.

    Handler failures are logged at WARNING with the decision; reply failures
    (``decision is None``) at ERROR.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    async def __call__(
        self,
        error: BaseException,
        decision: Decision | None,
    ) -> None:
        listener_id = getattr(error, "listener_id", None)
        if decision is None:
            self._logger.error(
                "Reply from listener %s failed: %s",
                listener_id,
                error,
                exc_info=error,
            )
            return
        self._logger.warning(
            "Listener %s failed, delivery will be %s: %s",
            listener_id,
            "discarded" if decision is Decision.DISCARD else "requeued",
            error,
            exc_info=error,
        )
