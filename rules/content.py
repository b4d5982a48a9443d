"""
Response Content - What a response sends back
=============================================

A closed set of immutable content variants. On disk the variant has no
explicit tag; it is recognised by which fields are present:

    content: str, path: str   -> TextAndImage
    content: [str, ...]       -> RandomText
    content: str              -> Text
    path: str                 -> Image
    (neither)                 -> NoResponse
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from core.exceptions import ContentError

CONTENT_KEYS = ("content", "path")


@dataclass(frozen=True)
class NoResponse:
    """Matches and triggers cooldown, but sends nothing."""
    kind = "none"

    def to_dict(self) -> Dict[str, Any]:
        return {}


@dataclass(frozen=True)
class Text:
    """A fixed text reply."""
    content: str
    kind = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content}


@dataclass(frozen=True)
class RandomText:
    """One of several texts, chosen uniformly when rendered."""
    content: Tuple[str, ...]
    kind = "random_text"

    def choose(self, rng=None) -> str:
        if not self.content:
            raise IndexError("The responses list is empty")
        return (rng or random).choice(self.content)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": list(self.content)}


@dataclass(frozen=True)
class Image:
    """An image reply, referenced by file path."""
    path: str
    kind = "image"

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path}


@dataclass(frozen=True)
class TextAndImage:
    """Text with an attached image."""
    content: str
    path: str
    kind = "text_and_image"

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "path": self.path}


ResponseContent = Union[NoResponse, Text, RandomText, Image, TextAndImage]


def decode_content(entry: Dict[str, Any]) -> ResponseContent:
    """
    Decode a response's content from its config entry by shape.

    Args:
        entry: Response mapping; only ``content`` and ``path`` are read

    Returns:
        The matching content variant

    Raises:
        ContentError: If the fields are present but malformed
    """
    content = entry.get("content")
    path = entry.get("path")

    if path is not None and not isinstance(path, str):
        raise ContentError(f"Image path must be a string, got {type(path).__name__}")

    if isinstance(content, list):
        if path is not None:
            raise ContentError("A random text list cannot be combined with an image path")
        if not content:
            raise ContentError("The responses list is empty")
        if not all(isinstance(item, str) for item in content):
            raise ContentError("Every entry of a random text list must be a string")
        return RandomText(content=tuple(content))

    if content is not None and not isinstance(content, str):
        raise ContentError(f"Content must be a string or a list of strings, got {type(content).__name__}")

    if content is not None and path is not None:
        return TextAndImage(content=content, path=path)
    if content is not None:
        return Text(content=content)
    if path is not None:
        return Image(path=path)
    return NoResponse()
