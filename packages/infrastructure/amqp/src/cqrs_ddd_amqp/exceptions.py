"""AMQP-specific exceptions for cqrs-ddd-amqp."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .message import Message


class AmqpError(Exception):
    """Root exception for the cqrs-ddd-amqp package."""


class AddressFormatError(AmqpError, ValueError):
    """Raised when structured address text (``type://exchange/key``) is malformed."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(f"Invalid address {text!r}: {reason}")


class MessageConversionError(AmqpError):
    """Raised when a payload cannot be encoded to or decoded from a message body.

    Always the root of its cause chain. Validation details from the codec
    are kept in ``errors``.
    """

    def __init__(self, message: str, *, errors: list[Any] | None = None) -> None:
        self.errors: list[Any] = errors or []
        super().__init__(message)


class TransportError(AmqpError):
    """Raised when the channel or connection to the broker is unusable.

    Surfaced to the caller, never retried by this package.
    """


class AmqpConnectionError(TransportError):
    """Raised when connectivity to the broker fails."""


class HandlerError(AmqpError):
    """Base class for listener handler errors (registration, binding, execution)."""


class ListenerRegistrationError(HandlerError):
    """Raised when two endpoints are registered under the same listener id."""


class ArgumentBindingError(HandlerError):
    """Raised when a delivery cannot be bound to the handler's arguments."""


class ListenerExecutionFailedError(HandlerError):
    """Failure record for one delivery.

    The original failure is kept as ``__cause__``; the delivered message and
    the listener id travel with it to the error classifier and observers.
    """

    def __init__(
        self,
        message: str,
        *,
        failed_message: Message,
        listener_id: str,
    ) -> None:
        self.failed_message = failed_message
        self.listener_id = listener_id
        super().__init__(message)


class ReplyFailedError(AmqpError):
    """Raised when a listener result could not be sent as a reply."""

    def __init__(self, message: str, *, listener_id: str) -> None:
        self.listener_id = listener_id
        super().__init__(message)


class RejectAndDontRequeueError(AmqpError):
    """Raise from a handler to have the delivery discarded instead of requeued."""
