"""AMQP messaging for CQRS/DDD — addresses, topology, templates and listeners."""

from __future__ import annotations

from .address import Address, ExchangeType
from .classification import (
    Acknowledgement,
    Decision,
    ErrorClassifier,
    cause_chain_contains,
    iter_causes,
)
from .conversion import SimpleMessageConverter
from .correlation import PendingReplies, generate_correlation_id
from .exceptions import (
    AddressFormatError,
    AmqpConnectionError,
    AmqpError,
    ArgumentBindingError,
    HandlerError,
    ListenerExecutionFailedError,
    ListenerRegistrationError,
    MessageConversionError,
    RejectAndDontRequeueError,
    ReplyFailedError,
    TransportError,
)
from .instrumentation import HookRegistry, get_hook_registry, set_hook_registry
from .listener import (
    ListenerContainer,
    ListenerDispatcher,
    ListenerEndpoint,
    ListenerRegistry,
    LoggingErrorObserver,
    MessageListenerAdapter,
)
from .memory import InMemoryBroker
from .message import DeliveryMode, Message, MessageProperties
from .template import AmqpTemplate
from .topology import Binding, Exchange, Queue, QueueBinding

__all__ = [
    "Acknowledgement",
    "Address",
    "AddressFormatError",
    "AmqpConnectionError",
    "AmqpError",
    "AmqpTemplate",
    "ArgumentBindingError",
    "Binding",
    "Decision",
    "DeliveryMode",
    "ErrorClassifier",
    "Exchange",
    "ExchangeType",
    "HandlerError",
    "HookRegistry",
    "InMemoryBroker",
    "ListenerContainer",
    "ListenerDispatcher",
    "ListenerEndpoint",
    "ListenerExecutionFailedError",
    "ListenerRegistrationError",
    "ListenerRegistry",
    "LoggingErrorObserver",
    "Message",
    "MessageConversionError",
    "MessageListenerAdapter",
    "MessageProperties",
    "PendingReplies",
    "Queue",
    "QueueBinding",
    "RejectAndDontRequeueError",
    "ReplyFailedError",
    "SimpleMessageConverter",
    "TransportError",
    "cause_chain_contains",
    "generate_correlation_id",
    "get_hook_registry",
    "iter_causes",
    "set_hook_registry",
]
