"""ListenerDispatcher — per-delivery state machine producing an acknowledgement.

``RECEIVED -> INVOKING -> SUCCEEDED -> ACK``
``RECEIVED -> INVOKING -> FAILED -> classifier -> REJECT_REQUEUE | REJECT_NO_REQUEUE``

All state is local to the delivery being processed; one dispatcher serves
any number of concurrent consumers.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..classification import Acknowledgement, ErrorClassifier
from ..exceptions import ListenerExecutionFailedError, ReplyFailedError
from ..instrumentation import get_hook_registry
from .adapter import MessageListenerAdapter, wrap_failure
from .observer import LoggingErrorObserver

if TYPE_CHECKING:
    from ..classification import Decision
    from ..message import Message
    from ..ports.observer import IErrorObserver
    from ..template import AmqpTemplate
    from .endpoint import ListenerEndpoint
    from .registry import ListenerRegistry

logger = logging.getLogger("cqrs_ddd_amqp.listener")


class DeliveryState(str, Enum):
    """Non-terminal states of a delivery."""

    RECEIVED = "received"
    INVOKING = "invoking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ListenerDispatcher:
    """Run one delivery through its endpoint and decide how to acknowledge it.

    Usage::

        dispatcher = ListenerDispatcher(registry, template)
        ack = await dispatcher.dispatch(message, delivery_tag, "capitalize")

    The dispatcher never acks or rejects by itself; the returned
    :class:`Acknowledgement` is handed to the transport by the caller.
    """

    def __init__(
        self,
        registry: ListenerRegistry,
        template: AmqpTemplate,
        *,
        classifier: ErrorClassifier | None = None,
        adapter: MessageListenerAdapter | None = None,
        error_observer: IErrorObserver | None = None,
    ) -> None:
        """Configure the dispatcher.

        Args:
            registry: Resolves listener ids to endpoints.
            template: Sends replies.
            classifier: Failure policy; default ErrorClassifier().
            adapter: Argument binding; defaults to one using the template's
                converter.
            error_observer: Receives every failure; default LoggingErrorObserver().
        """
        self._registry = registry
        self._template = template
        self._classifier = classifier or ErrorClassifier()
        self._adapter = adapter or MessageListenerAdapter(template.converter)
        self._observer: IErrorObserver = error_observer or LoggingErrorObserver()

    async def dispatch(
        self,
        message: Message,
        delivery_tag: int,
        listener_id: str,
    ) -> Acknowledgement:
        """Process one delivery and return its terminal state.

        Raises:
            KeyError: if *listener_id* is not registered.
        """
        endpoint = self._registry.get(listener_id)
        self._trace(delivery_tag, listener_id, DeliveryState.RECEIVED)

        attributes = {
            "listener.id": listener_id,
            "amqp.delivery_tag": delivery_tag,
            "amqp.redelivered": message.properties.redelivered,
            "correlation_id": message.properties.correlation_id,
        }

        async def _invoke() -> Any:
            return await self._adapter.invoke(endpoint, message)

        self._trace(delivery_tag, listener_id, DeliveryState.INVOKING)
        try:
            result = await get_hook_registry().execute_all(
                f"amqp.listener.{listener_id}", attributes, _invoke
            )
        except Exception as e:
            self._trace(delivery_tag, listener_id, DeliveryState.FAILED)
            failure = (
                e
                if isinstance(e, ListenerExecutionFailedError)
                else wrap_failure(endpoint, message, e)
            )
            return await self._reject(failure)

        self._trace(delivery_tag, listener_id, DeliveryState.SUCCEEDED)
        await self._reply(endpoint, message, result)
        return Acknowledgement.ACK

    async def _reject(self, failure: ListenerExecutionFailedError) -> Acknowledgement:
        decision = self._classifier.classify(failure)
        await self._notify(failure, decision)
        return Acknowledgement.for_decision(decision)

    async def _reply(
        self,
        endpoint: ListenerEndpoint,
        request: Message,
        result: Any,
    ) -> None:
        """Send the reply; failures are reported but never change the ack."""
        try:
            reply = self._adapter.build_reply(request, result)
            if reply is None:
                return
            destination = request.properties.reply_to_address or endpoint.reply_to
            if destination is None:
                raise ReplyFailedError(
                    f"Cannot determine reply destination for listener "
                    f"{endpoint.id!r}: request has no reply_to and the listener "
                    f"has no default reply_to",
                    listener_id=endpoint.id,
                )
            await self._template.send(reply, address=destination)
        except ReplyFailedError as e:
            await self._notify(e, None)
        except Exception as e:
            failure = ReplyFailedError(
                f"Reply from listener {endpoint.id!r} failed: {e}",
                listener_id=endpoint.id,
            )
            failure.__cause__ = e
            await self._notify(failure, None)

    async def _notify(self, error: BaseException, decision: Decision | None) -> None:
        try:
            await self._observer(error, decision)
        except Exception:
            logger.exception(
                "Error observer %s raised while reporting %s",
                type(self._observer).__name__,
                type(error).__name__,
            )

    @staticmethod
    def _trace(delivery_tag: int, listener_id: str, state: DeliveryState) -> None:
        logger.debug(
            "Delivery %s for listener %s: %s", delivery_tag, listener_id, state.value
        )
