"""
Renderers - Deliver replies to the chat platform
================================================

A renderer turns a reply decision into platform output. The responder
itself never talks to the chat platform; it hands replies to one of:

- WebhookRenderer: posts replies to the platform bridge over HTTP
- LogRenderer: only logs replies (no webhook configured)
- ConsoleRenderer: prints replies (command-line test mode)
"""

import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, TextIO

import httpx

from core.exceptions import RenderError
from core.logging import get_logger

logger = get_logger("services.renderers")


class Renderer(ABC):
    """Output side of the dispatcher."""

    @abstractmethod
    def send_text(self, reference: str, text: str) -> None:
        """Reply to a message with text."""

    @abstractmethod
    def send_image(self, reference: str, path: str) -> None:
        """Reply to a message with an image file."""

    @abstractmethod
    def send_text_and_image(self, reference: str, text: str, path: str) -> None:
        """Reply to a message with text and an attached image."""


class WebhookRenderer(Renderer):
    """
    Posts replies to an HTTP endpoint of the chat platform bridge.

    Text replies are sent as JSON ``{"reference": ..., "text": ...}``.
    Image replies are sent as multipart form data with a ``file`` part.
    Failures raise RenderError and are not retried.

    Example:
        renderer = WebhookRenderer("http://bridge.local/reply", timeout=5.0)
        renderer.send_text("msg-123", "I use Arch btw")
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            url: Reply endpoint
            headers: Extra headers (e.g. an auth token)
            timeout: Request timeout in seconds
            client: Shared client to use instead of one per request
        """
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout
        self._client = client

    def _post(self, reference: str, **kwargs) -> None:
        try:
            if self._client is not None:
                response = self._client.post(self.url, headers=self.headers, **kwargs)
                response.raise_for_status()
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, headers=self.headers, **kwargs)
                    response.raise_for_status()
        except httpx.HTTPError as e:
            raise RenderError(
                f"Reply delivery failed: {e}",
                reference=reference,
                details={"url": self.url},
            ) from e

    def _post_file(self, reference: str, path: str, text: Optional[str]) -> None:
        image = Path(path)
        if not image.is_file():
            raise RenderError(f"Image not found: {path}", reference=reference)

        data = {"reference": reference}
        if text is not None:
            data["text"] = text

        with open(image, "rb") as f:
            self._post(reference, data=data, files={"file": (image.name, f)})

    def send_text(self, reference: str, text: str) -> None:
        self._post(reference, json={"reference": reference, "text": text})

    def send_image(self, reference: str, path: str) -> None:
        self._post_file(reference, path, None)

    def send_text_and_image(self, reference: str, text: str, path: str) -> None:
        self._post_file(reference, path, text)


class LogRenderer(Renderer):
    """Logs replies instead of sending them."""

    def send_text(self, reference: str, text: str) -> None:
        logger.info(f"Reply to {reference}: {text}")

    def send_image(self, reference: str, path: str) -> None:
        logger.info(f"Reply to {reference}: <image {path}>")

    def send_text_and_image(self, reference: str, text: str, path: str) -> None:
        logger.info(f"Reply to {reference}: {text} <image {path}>")


class ConsoleRenderer(Renderer):
    """Prints replies, for trying rules out from the command line."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def send_text(self, reference: str, text: str) -> None:
        print(f"  Reply: {text}", file=self.stream)

    def send_image(self, reference: str, path: str) -> None:
        print(f"  Image: {path}", file=self.stream)

    def send_text_and_image(self, reference: str, text: str, path: str) -> None:
        print(f"  Reply: {text}", file=self.stream)
        print(f"  Image: {path}", file=self.stream)


def create_renderer(url: str = "", headers: Optional[Dict[str, str]] = None, timeout: float = 10.0) -> Renderer:
    """
    Pick a renderer for the webhook settings.

    Returns:
        WebhookRenderer when a URL is configured, LogRenderer otherwise
    """
    if url:
        logger.info(f"Replies will be posted to {url}")
        return WebhookRenderer(url, headers=headers, timeout=timeout)

    logger.info("No reply webhook configured, replies will only be logged")
    return LogRenderer()
