from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..message import Message, MessageProperties


@runtime_checkable
class IMessageConverter(Protocol):
    """
    Port for payload codecs (object <-> message body).

    Both directions raise ``MessageConversionError`` on failure.
    """

    def to_message(
        self,
        payload: Any,
        properties: MessageProperties | None = None,
    ) -> Message: ...

    def from_message(self, message: Message, target_type: Any = None) -> Any: ...
