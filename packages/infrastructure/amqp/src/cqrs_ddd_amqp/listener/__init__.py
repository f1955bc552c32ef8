"""Listener endpoints, dispatch and containers."""

from __future__ import annotations

from .adapter import MessageListenerAdapter
from .container import ListenerContainer
from .dispatcher import DeliveryState, ListenerDispatcher
from .endpoint import ListenerEndpoint
from .observer import LoggingErrorObserver
from .registry import ListenerRegistry

__all__ = [
    "DeliveryState",
    "ListenerContainer",
    "ListenerDispatcher",
    "ListenerEndpoint",
    "ListenerRegistry",
    "LoggingErrorObserver",
    "MessageListenerAdapter",
]
