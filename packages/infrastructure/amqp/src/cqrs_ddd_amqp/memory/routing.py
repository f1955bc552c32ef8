"""Exchange routing rules used by the in-memory broker."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..address import ExchangeType
from ..topology import X_MATCH

if TYPE_CHECKING:
    from ..topology import Binding


def topic_matches(pattern: str, routing_key: str) -> bool:
    """AMQP topic match: ``*`` is exactly one word, ``#`` zero or more."""
    return _match_words(pattern.split("."), routing_key.split("."))


def _match_words(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match_words(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head in ("*", words[0]):
        return _match_words(rest, words[1:])
    return False


def headers_match(arguments: dict[str, Any], headers: dict[str, Any]) -> bool:
    """``x-match=all`` (default) needs every pair to match, ``any`` at least one.

    Binding arguments starting with ``x-`` are not matched against headers.
    """
    mode = str(arguments.get(X_MATCH, "all")).lower()
    expected = {k: v for k, v in arguments.items() if not k.startswith("x-")}
    if not expected:
        return mode == "all"
    hits = [key in headers and headers[key] == value for key, value in expected.items()]
    if mode.startswith("any"):
        return any(hits)
    return all(hits)


def binding_matches(
    exchange_type: str,
    binding: Binding,
    routing_key: str,
    headers: dict[str, Any],
) -> bool:
    """Whether *binding* on an exchange of *exchange_type* accepts the message.

    Custom exchange types route like ``direct``.
    """
    if exchange_type == ExchangeType.FANOUT.value:
        return True
    if exchange_type == ExchangeType.TOPIC.value:
        return topic_matches(binding.routing_key, routing_key)
    if exchange_type == ExchangeType.HEADERS.value:
        return headers_match(binding.arguments, headers)
    return binding.routing_key == routing_key
