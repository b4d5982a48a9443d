"""
Rules Module - Rule language and response registry
==================================================

This module decides whether a chat message gets an automatic reply:
- Rule sets: line-oriented regex predicates (require / forbid)
- Response content variants (text, random text, image, text + image)
- The response registry with cooldown and hit-rate gating
"""

from .ruleset import RuleSet, Predicate, Polarity, parse_ruleset
from .content import (
    ResponseContent,
    NoResponse,
    Text,
    RandomText,
    Image,
    TextAndImage,
    decode_content,
)
from .registry import (
    ResponseRegistry,
    RegisteredResponse,
    ResponseSpec,
    TriggerState,
    GlobalDefaults,
    NEVER,
)

__all__ = [
    "RuleSet",
    "Predicate",
    "Polarity",
    "parse_ruleset",
    "ResponseContent",
    "NoResponse",
    "Text",
    "RandomText",
    "Image",
    "TextAndImage",
    "decode_content",
    "ResponseRegistry",
    "RegisteredResponse",
    "ResponseSpec",
    "TriggerState",
    "GlobalDefaults",
    "NEVER",
]
