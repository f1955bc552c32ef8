"""AMQP message: opaque body plus a mutable property bag."""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .address import Address

CONTENT_TYPE_BYTES = "application/octet-stream"
CONTENT_TYPE_TEXT_PLAIN = "text/plain"
CONTENT_TYPE_JSON = "application/json"


class DeliveryMode(IntEnum):
    """AMQP delivery mode."""

    NON_PERSISTENT = 1
    PERSISTENT = 2


class MessageProperties(BaseModel):
    """Mutable message properties.

    Listener code may change these (e.g. headers) before a reply is built.
    The ``delivery_tag`` .. ``consumer_queue`` fields are filled by the
    transport for inbound messages only.
    """

    model_config = ConfigDict(validate_assignment=True)

    content_type: str = CONTENT_TYPE_BYTES
    content_encoding: str | None = None
    headers: dict[str, Any] = Field(default_factory=dict)
    delivery_mode: DeliveryMode = DeliveryMode.PERSISTENT
    priority: int | None = Field(default=None, ge=0, le=255)
    correlation_id: str | None = None
    reply_to: str | None = None
    message_id: str | None = None
    timestamp: datetime | None = None
    type: str | None = None
    app_id: str | None = None
    # per-message TTL in milliseconds, as AMQP carries it
    expiration: str | None = Field(default=None, pattern=r"^[0-9]+$")

    delivery_tag: int | None = None
    redelivered: bool | None = None
    received_exchange: str | None = None
    received_routing_key: str | None = None
    consumer_queue: str | None = None

    @property
    def reply_to_address(self) -> Address | None:
        """``reply_to`` parsed as an :class:`Address` (``None`` when unset)."""
        if not self.reply_to:
            return None
        return Address.parse(self.reply_to)


class Message(BaseModel):
    """Body bytes plus properties.

    The model is frozen, so the body cannot be replaced once set; the
    properties object stays mutable. A message never references the channel
    or connection it arrived on.
    """

    model_config = ConfigDict(frozen=True)

    body: bytes = b""
    properties: MessageProperties = Field(default_factory=MessageProperties)

    def copy_message(self) -> Message:
        """Deep copy, safe to mutate independently of the original."""
        return self.model_copy(deep=True)

    def __repr__(self) -> str:
        preview = self.body[:50]
        suffix = "..." if len(self.body) > 50 else ""
        return (
            f"Message(body={preview!r}{suffix}, "
            f"content_type={self.properties.content_type!r}, "
            f"correlation_id={self.properties.correlation_id!r}, "
            f"delivery_tag={self.properties.delivery_tag!r})"
        )
