"""
Core Module - Foundation components for the Chat Auto-Responder
===============================================================

This module provides the foundational components including:
- Exception hierarchy
- Logging setup
- Configuration management (core.config)
- The shared configuration store with live reload (core.store, core.watcher)

Only exceptions and logging are re-exported here; core.config depends on
the rules package, which itself imports from core.
"""

from .exceptions import (
    ResponderError,
    ConfigError,
    ParseError,
    RuleParseError,
    ContentError,
    PersistError,
    RenderError,
)
from .logging import setup_logging, get_logger, get_log_context, set_log_context, clear_log_context

__all__ = [
    "ResponderError",
    "ConfigError",
    "ParseError",
    "RuleParseError",
    "ContentError",
    "PersistError",
    "RenderError",
    "setup_logging",
    "get_logger",
    "get_log_context",
    "set_log_context",
    "clear_log_context",
]
