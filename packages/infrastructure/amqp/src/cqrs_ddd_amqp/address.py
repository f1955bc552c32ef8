"""Textual send-target encoding (exchange type, exchange name, routing key).

Two textual forms are supported and kept apart:

* structured: ``direct://my-exchange/routing-key``
* unstructured: ``my-exchange/routing-key`` or a bare ``routing-key``

An address always renders back to the form it was parsed from, so
``Address.parse(str(a)) == a`` holds for both forms.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .exceptions import AddressFormatError

_SCHEME_SEPARATOR = "://"
_PATH_SEPARATOR = "/"


class ExchangeType(str, Enum):
    """Well-known exchange types. Exchanges may also use custom type strings."""

    DIRECT = "direct"
    TOPIC = "topic"
    FANOUT = "fanout"
    HEADERS = "headers"


@dataclass(frozen=True)
class Address:
    """Immutable send-target: ``{exchange_type, exchange_name, routing_key}``.

    Building an ``Address`` directly produces the structured form. Use
    :meth:`parse`, :meth:`unstructured` or :meth:`for_queue` for the legacy
    unstructured form.

    A structured exchange name cannot contain ``/``. Unstructured addresses
    are always direct.

    Unstructured parsing splits on the *last* ``/``: a routing key that itself
    contains ``/`` is only recovered intact if the exchange name is known by
    other means. Slashes are never escaped.
    """

    exchange_type: ExchangeType
    exchange_name: str
    routing_key: str
    structured: bool = True
    # Unstructured only: whether the rendered text carries the "/" separator.
    separated: bool = field(default=True, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.exchange_type, ExchangeType):
            object.__setattr__(self, "exchange_type", ExchangeType(self.exchange_type))
        if self.structured:
            if not self.separated:
                object.__setattr__(self, "separated", True)
            if _PATH_SEPARATOR in self.exchange_name:
                raise ValueError(
                    f"Structured exchange name must not contain '/': "
                    f"{self.exchange_name!r}"
                )
            return
        if self.exchange_type is not ExchangeType.DIRECT:
            raise ValueError("Unstructured addresses are always direct")
        if not self.separated and self.exchange_name:
            raise ValueError(
                "An address without the '/' separator cannot carry an exchange name"
            )

    # ── Construction ─────────────────────────────────────────────

    @classmethod
    def parse(cls, text: str) -> Address:
        """Parse structured or unstructured address text.

        Raises:
            AddressFormatError: if ``://`` is present but the scheme is not a
                known exchange type or the exchange/routing-key separator is
                missing. Unstructured text never fails.
        """
        if _SCHEME_SEPARATOR in text:
            return cls._parse_structured(text)
        exchange_name, sep, routing_key = text.rpartition(_PATH_SEPARATOR)
        return cls(
            ExchangeType.DIRECT,
            exchange_name,
            routing_key,
            structured=False,
            separated=bool(sep),
        )

    @classmethod
    def _parse_structured(cls, text: str) -> Address:
        scheme, _, rest = text.partition(_SCHEME_SEPARATOR)
        token = scheme.strip().lower()
        try:
            exchange_type = ExchangeType(token)
        except ValueError:
            raise AddressFormatError(
                text, f"unknown exchange type {scheme!r}"
            ) from None
        exchange_name, sep, routing_key = rest.partition(_PATH_SEPARATOR)
        if not sep:
            raise AddressFormatError(
                text, "expected '<exchange>/<routing-key>' after the scheme"
            )
        return cls(exchange_type, exchange_name, routing_key)

    @classmethod
    def unstructured(cls, exchange_name: str, routing_key: str) -> Address:
        """Build an unstructured ``exchange/routing-key`` address."""
        return cls(
            ExchangeType.DIRECT,
            exchange_name,
            routing_key,
            structured=False,
            separated=True,
        )

    @classmethod
    def for_queue(cls, queue_name: str) -> Address:
        """Address a queue directly through the default exchange (bare routing key)."""
        return cls(
            ExchangeType.DIRECT,
            "",
            queue_name,
            structured=False,
            separated=False,
        )

    # ── Rendering ────────────────────────────────────────────────

    def is_structured(self) -> bool:
        return self.structured

    def __str__(self) -> str:
        if self.structured:
            return (
                f"{self.exchange_type.value}{_SCHEME_SEPARATOR}"
                f"{self.exchange_name}{_PATH_SEPARATOR}{self.routing_key}"
            )
        if self.separated:
            return f"{self.exchange_name}{_PATH_SEPARATOR}{self.routing_key}"
        return self.routing_key
