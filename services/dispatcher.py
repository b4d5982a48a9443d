"""
Dispatcher - Inbound message to outbound reply
==============================================

The dispatcher is the boundary between the chat platform and the
responder core. For each inbound message it reads the current
configuration snapshot, asks the response registry for a decision and
hands the resulting reply to a renderer.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.exceptions import RenderError
from core.logging import clear_log_context, get_logger, set_log_context
from core.store import ConfigStore
from rules.content import Image, NoResponse, RandomText, ResponseContent, Text, TextAndImage
from .renderers import Renderer

logger = get_logger("services.dispatcher")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InboundMessage:
    """
    A chat message as handed over by the platform client.

    Attributes:
        text (str): Message content
        reference (str): Opaque handle used to reply (id or link)
        timestamp (datetime): When the message was sent
    """
    text: str
    reference: str = ""
    timestamp: datetime = field(default_factory=_utcnow)

    def __str__(self) -> str:
        return f"[{self.reference}] {self.text[:50]}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "reference": self.reference,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InboundMessage":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            text=data["text"],
            reference=data.get("reference", ""),
            timestamp=timestamp or _utcnow(),
        )


@dataclass(frozen=True)
class Reply:
    """
    The outbound decision for one message.

    ``kind`` is the content variant; for random text, ``text`` holds the
    entry that was picked.
    """
    kind: str
    text: Optional[str] = None
    image_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "text": self.text, "image_path": self.image_path}


def resolve_reply(content: ResponseContent, rng=None) -> Reply:
    """
    Turn response content into a concrete reply.

    Raises:
        RenderError: For a random text response with no entries
    """
    if isinstance(content, RandomText):
        try:
            return Reply(kind=content.kind, text=content.choose(rng))
        except IndexError as e:
            raise RenderError("The responses list is empty") from e
    if isinstance(content, Text):
        return Reply(kind=content.kind, text=content.content)
    if isinstance(content, TextAndImage):
        return Reply(kind=content.kind, text=content.content, image_path=content.path)
    if isinstance(content, Image):
        return Reply(kind=content.kind, image_path=content.path)
    return Reply(kind=NoResponse.kind)


class Dispatcher:
    """
    Routes inbound messages through the registry to a renderer.

    Safe to call from many threads at once: every call works on the
    snapshot current at its start.

    Example:
        dispatcher = Dispatcher(store, create_renderer(url))
        reply = dispatcher.handle(InboundMessage("I love rust", "msg-1"))
    """

    def __init__(self, store: ConfigStore, renderer: Renderer, rng=None):
        self.store = store
        self.renderer = renderer
        self.rng = rng or random

    def evaluate(self, message: InboundMessage) -> Optional[ResponseContent]:
        """Decide on a response without sending anything."""
        registry = self.store.snapshot().registry
        return registry.evaluate(message.text, message.reference, message.timestamp, self.rng)

    def handle(self, message: InboundMessage) -> Optional[Reply]:
        """
        Evaluate a message and send the selected reply.

        Args:
            message: Inbound message

        Returns:
            The reply that was sent, or None if no response fired

        Raises:
            RenderError: If the renderer fails; not retried
        """
        set_log_context(message_ref=message.reference)
        try:
            content = self.evaluate(message)
            if content is None:
                return None

            reply = resolve_reply(content, self.rng)
            try:
                self.render(reply, message.reference)
            except RenderError as e:
                logger.error(f"Failed to reply to {message.reference}: {e}")
                raise
            return reply
        finally:
            clear_log_context()

    def render(self, reply: Reply, reference: str) -> None:
        """Send a reply through the renderer. A ``none`` reply sends nothing."""
        if reply.text is not None and reply.image_path is not None:
            self.renderer.send_text_and_image(reference, reply.text, reply.image_path)
        elif reply.image_path is not None:
            self.renderer.send_image(reference, reply.image_path)
        elif reply.text is not None:
            self.renderer.send_text(reference, reply.text)
