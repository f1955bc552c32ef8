"""SimpleMessageConverter — bytes / text / JSON payload codec with typed decoding."""

from __future__ import annotations

import json
from typing import Any, get_origin

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from .exceptions import MessageConversionError
from .message import (
    CONTENT_TYPE_BYTES,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_TEXT_PLAIN,
    Message,
    MessageProperties,
)

DEFAULT_CHARSET = "utf-8"


def _type_name(target_type: Any) -> str:
    return getattr(target_type, "__name__", None) or repr(target_type)


class SimpleMessageConverter:
    """Convert payloads to message bodies and back.

    Outbound: ``bytes`` pass through as ``application/octet-stream``; ``str``
    becomes ``text/plain``; anything else (pydantic models, dicts, lists,
    datetimes, ...) is serialized to ``application/json``.

    Inbound: the body is decoded according to its content type, then, when a
    ``target_type`` is given, validated into that type with a pydantic
    ``TypeAdapter``. Any failure raises :class:`MessageConversionError` with
    no cause; the underlying error text or validation details travel on it.
    """

    def __init__(self, *, charset: str = DEFAULT_CHARSET) -> None:
        self._charset = charset
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    # ── Outbound ─────────────────────────────────────────────────

    def to_message(
        self,
        payload: Any,
        properties: MessageProperties | None = None,
    ) -> Message:
        """Encode ``payload`` into a new message."""
        props = properties.model_copy(deep=True) if properties else MessageProperties()
        if isinstance(payload, (bytes, bytearray)):
            body = bytes(payload)
            props.content_type = CONTENT_TYPE_BYTES
        elif isinstance(payload, str):
            try:
                body = payload.encode(self._charset)
            except UnicodeEncodeError as e:
                raise MessageConversionError(str(e)) from None
            props.content_type = CONTENT_TYPE_TEXT_PLAIN
            props.content_encoding = self._charset
        else:
            body = self._encode_json(payload)
            props.content_type = CONTENT_TYPE_JSON
            props.content_encoding = DEFAULT_CHARSET
        return Message(body=body, properties=props)

    def _encode_json(self, payload: Any) -> bytes:
        try:
            if isinstance(payload, BaseModel):
                return payload.model_dump_json().encode(DEFAULT_CHARSET)
            return to_json(payload)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise MessageConversionError(
                f"Failed to convert {type(payload).__name__} payload to JSON: {e}"
            ) from None

    # ── Inbound ──────────────────────────────────────────────────

    def from_message(self, message: Message, target_type: Any = None) -> Any:
        """Decode the message body, optionally into ``target_type``."""
        value = self._decode_body(message)
        if target_type is None or target_type is Any:
            return value
        if (
            get_origin(target_type) is None
            and isinstance(target_type, type)
            and isinstance(value, target_type)
        ):
            return value
        try:
            return self._adapter(target_type).validate_python(value)
        except ValidationError as e:
            raise MessageConversionError(
                f"Failed to convert message payload {value!r} "
                f"to {_type_name(target_type)!r}",
                errors=e.errors(),
            ) from None

    def _decode_body(self, message: Message) -> Any:
        props = message.properties
        content_type = (props.content_type or "").lower()
        encoding = props.content_encoding or self._charset
        try:
            if content_type.startswith("text/"):
                return message.body.decode(encoding)
            if "json" in content_type:
                return json.loads(message.body.decode(encoding))
        except (UnicodeDecodeError, LookupError, json.JSONDecodeError) as e:
            raise MessageConversionError(
                f"Failed to decode {content_type} body: {e}"
            ) from None
        return message.body

    def _adapter(self, target_type: Any) -> TypeAdapter[Any]:
        try:
            adapter = self._adapters.get(target_type)
        except TypeError:
            return TypeAdapter(target_type)
        if adapter is None:
            adapter = TypeAdapter(target_type)
            self._adapters[target_type] = adapter
        return adapter
