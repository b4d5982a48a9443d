"""
Logging Module - Centralized logging configuration
=================================================

All responder loggers live under the ``responder`` hierarchy:

- responder.rules.registry   gating decisions (Cooldown / Miss / Hit, DEBUG)
- responder.core.*           loading, saving and live reload
- responder.services.*       dispatch and reply delivery
- responder.web.*            HTTP surface

Console output goes to stderr so replies printed by the command-line test
mode stay readable on stdout. With a log directory, everything is written
to ``responder.log`` and errors additionally to ``errors.log`` as JSON
lines.

Records carry the thread-local context set by the dispatcher, usually the
reference of the message being handled.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "responder"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s%(context_suffix)s"

_local = threading.local()
_configured = False


def _context_suffix(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return ""
    return " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, timestamped with the record's own time."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }

        context = getattr(record, "context", None)
        if context:
            entry.update(context)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Short colored console lines: time, level, component, message."""

    COLORS = {
        "DEBUG": "\033[2m",      # Dim, gating decisions are noisy
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        component = record.name[len(ROOT_LOGGER_NAME) + 1:] or ROOT_LOGGER_NAME

        line = (
            f"{clock} {color}{record.levelname:<7}{self.RESET} "
            f"{component}: {record.getMessage()}"
            f"{_context_suffix(getattr(record, 'context', None))}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextFilter(logging.Filter):
    """Copies the current thread's log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_log_context()
        record.context = context
        record.context_suffix = _context_suffix(context)
        return True


class LoggerAdapter(logging.LoggerAdapter):
    """Adds fixed per-logger fields; fields passed at the call site win."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    json_format: bool = False,
    console_output: bool = True,
    force: bool = False
) -> None:
    """
    Configure the ``responder`` logger hierarchy.

    Called once at startup. Later calls are ignored unless ``force`` is set.

    Args:
        log_dir: Directory for responder.log and errors.log (optional)
        log_level: Minimum level; DEBUG shows every gating decision
        json_format: Write responder.log as JSON lines too
        console_output: Log to stderr
        force: Replace an existing configuration
    """
    global _configured

    if _configured and not force:
        return

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False

    handlers = []

    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ColoredFormatter())
        handlers.append(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        main_log = logging.FileHandler(log_path / "responder.log", encoding="utf-8")
        main_log.setFormatter(JSONFormatter() if json_format else logging.Formatter(FILE_FORMAT))
        handlers.append(main_log)

        error_log = logging.FileHandler(log_path / "errors.log", encoding="utf-8")
        error_log.setLevel(logging.ERROR)
        error_log.setFormatter(JSONFormatter())
        handlers.append(error_log)

    context_filter = ContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root.addHandler(handler)

    _configured = True


def get_logger(name: str, **extra) -> LoggerAdapter:
    """
    Get a logger under the ``responder`` hierarchy.

    Args:
        name: Component name, e.g. ``"rules.registry"``
        **extra: Fields attached to every record of this logger

    Example:
        logger = get_logger("core.watcher")
        logger.info("Config file changed, reloading...")
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return LoggerAdapter(logging.getLogger(name), extra)


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current thread's log context."""
    return dict(getattr(_local, "context", {}))


def set_log_context(**kwargs) -> None:
    """
    Add fields to the current thread's log context.

    Example:
        set_log_context(message_ref="https://chat.example/m/123")
        logger.info("Replying")  # ... [message_ref=https://chat.example/m/123]
    """
    context = getattr(_local, "context", None)
    if context is None:
        context = _local.context = {}
    context.update(kwargs)


def clear_log_context() -> None:
    """Drop the current thread's log context."""
    _local.context = {}
