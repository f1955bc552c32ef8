"""Decide whether a failed delivery is requeued or discarded.

A classifier is an ordered list of *fatal predicates* ``(exc) -> bool``
combined with OR. Fatal failures are discarded; everything else is requeued
on the assumption that it is transient (a downstream timeout, resource
exhaustion, ...).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import MessageConversionError, RejectAndDontRequeueError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    FatalPredicate = Callable[[BaseException], bool]

logger = logging.getLogger("cqrs_ddd_amqp.classification")


class Decision(str, Enum):
    """Outcome for a failed delivery."""

    REQUEUE = "requeue"
    DISCARD = "discard"


class Acknowledgement(str, Enum):
    """Terminal state of a delivery, handed to the transport."""

    ACK = "ack"
    REJECT_REQUEUE = "reject_requeue"
    REJECT_NO_REQUEUE = "reject_no_requeue"

    @classmethod
    def for_decision(cls, decision: Decision) -> Acknowledgement:
        if decision is Decision.DISCARD:
            return cls.REJECT_NO_REQUEUE
        return cls.REJECT_REQUEUE


def iter_causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and every exception in its cause chain, outermost first.

    Follows ``__cause__``, then ``__context__`` unless suppressed with
    ``raise ... from None``. Cycles are cut.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def cause_chain_contains(
    exc: BaseException,
    *types: type[BaseException],
) -> bool:
    """True if any exception in the cause chain is an instance of *types*."""
    return any(isinstance(cause, types) for cause in iter_causes(exc))


def is_conversion_failure(exc: BaseException) -> bool:
    """The payload will never convert, so redelivery cannot succeed."""
    return cause_chain_contains(exc, MessageConversionError)


def is_explicit_reject(exc: BaseException) -> bool:
    """The handler asked for the delivery to be discarded."""
    return cause_chain_contains(exc, RejectAndDontRequeueError)


DEFAULT_FATAL_PREDICATES: tuple[FatalPredicate, ...] = (
    is_conversion_failure,
    is_explicit_reject,
)


class ErrorClassifier:
    """Classify listener failures as :attr:`Decision.REQUEUE` or :attr:`Decision.DISCARD`.

    Usage::

        classifier = ErrorClassifier(
            lambda exc: cause_chain_contains(exc, PermissionError),
        )
        classifier.classify(failure)  # DISCARD for conversion/permission errors

    Args:
        *fatal_predicates: Extra predicates OR-ed with the defaults.
        include_defaults: Set False to drop :data:`DEFAULT_FATAL_PREDICATES`.
    """

    def __init__(
        self,
        *fatal_predicates: FatalPredicate,
        include_defaults: bool = True,
    ) -> None:
        defaults = DEFAULT_FATAL_PREDICATES if include_defaults else ()
        self._predicates: tuple[FatalPredicate, ...] = (*defaults, *fatal_predicates)

    @property
    def predicates(self) -> tuple[FatalPredicate, ...]:
        return self._predicates

    def with_predicates(self, *fatal_predicates: FatalPredicate) -> ErrorClassifier:
        """Return a new classifier with *fatal_predicates* appended."""
        return ErrorClassifier(
            *self._predicates, *fatal_predicates, include_defaults=False
        )

    def is_fatal(self, exc: BaseException) -> bool:
        """OR of all predicates. A predicate that raises counts as fatal."""
        for predicate in self._predicates:
            try:
                if predicate(exc):
                    return True
            except Exception:
                logger.exception(
                    "Fatal predicate %r raised while classifying %s; discarding",
                    predicate,
                    type(exc).__name__,
                )
                return True
        return False

    def classify(self, exc: BaseException) -> Decision:
        return Decision.DISCARD if self.is_fatal(exc) else Decision.REQUEUE
