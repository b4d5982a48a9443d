"""
Services Module - Message dispatch and reply delivery
=====================================================

This module provides the boundary services:
- Dispatcher: inbound message -> registry decision -> renderer
- Renderers: webhook, log and console reply delivery
"""

from .dispatcher import Dispatcher, InboundMessage, Reply, resolve_reply
from .renderers import (
    Renderer,
    WebhookRenderer,
    LogRenderer,
    ConsoleRenderer,
    create_renderer,
)

__all__ = [
    "Dispatcher",
    "InboundMessage",
    "Reply",
    "resolve_reply",
    "Renderer",
    "WebhookRenderer",
    "LogRenderer",
    "ConsoleRenderer",
    "create_renderer",
]
