"""In-memory transport and provisioner for tests and local runs."""

from __future__ import annotations

from .broker import InMemoryBroker
from .routing import headers_match, topic_matches

__all__ = ["InMemoryBroker", "headers_match", "topic_matches"]
