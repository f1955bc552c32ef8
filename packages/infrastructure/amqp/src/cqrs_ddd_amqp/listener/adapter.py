"""Bind a delivery to handler arguments, invoke the handler, build the reply."""

from __future__ import annotations

from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from ..exceptions import ArgumentBindingError, ListenerExecutionFailedError
from ..message import Message

if TYPE_CHECKING:
    from ..ports.conversion import IMessageConverter
    from .endpoint import ListenerEndpoint


def wrap_failure(
    endpoint: ListenerEndpoint,
    message: Message,
    exc: BaseException,
) -> ListenerExecutionFailedError:
    """Build the failure record for *exc*, keeping it as ``__cause__``."""
    failure = ListenerExecutionFailedError(
        f"Listener {endpoint.id!r} ({endpoint.handler_name}) failed: {exc}",
        failed_message=message,
        listener_id=endpoint.id,
    )
    failure.__cause__ = exc
    return failure


class MessageListenerAdapter:
    """Invoke endpoint handlers with converted payloads and header arguments.

    Every failure (conversion, argument binding, handler exception) comes out
    as :class:`ListenerExecutionFailedError` with the original error as its
    cause, so the classifier can tell them apart.
    """

    def __init__(self, converter: IMessageConverter) -> None:
        self._converter = converter

    async def invoke(self, endpoint: ListenerEndpoint, message: Message) -> Any:
        """Call the handler for *message* and return its result (may be None)."""
        try:
            payload, kwargs = self._bind(endpoint, message)
            result = endpoint.handler(payload, **kwargs)
            if isawaitable(result):
                result = await result
        except Exception as e:
            raise wrap_failure(endpoint, message, e) from e
        return result

    def _bind(
        self,
        endpoint: ListenerEndpoint,
        message: Message,
    ) -> tuple[Any, dict[str, Any]]:
        if endpoint.payload_type is Message:
            payload: Any = message
        else:
            payload = self._converter.from_message(message, endpoint.payload_type)
        headers = message.properties.headers
        kwargs: dict[str, Any] = {}
        for name in endpoint.headers:
            if name not in headers:
                raise ArgumentBindingError(
                    f"Missing header {name!r} required by listener {endpoint.id!r}"
                )
            kwargs[name] = headers[name]
        return payload, kwargs

    def build_reply(self, request: Message, result: Any) -> Message | None:
        """Turn a handler result into a reply correlated with *request*.

        ``None`` means no reply. A :class:`Message` result is sent as-is
        (copied); anything else goes through the converter.
        """
        if result is None:
            return None
        if isinstance(result, Message):
            reply = result.copy_message()
        else:
            reply = self._converter.to_message(result)
        if reply.properties.correlation_id is None:
            reply.properties.correlation_id = (
                request.properties.correlation_id or request.properties.message_id
            )
        return reply
