"""
Response Registry - Candidate selection with cooldown and hit-rate gating
=========================================================================

The registry holds the ordered list of registered responses and the
global defaults they fall back on. For each message it walks the
responses in declaration order and returns the content of the first
one that matches and passes both gates:

- Cooldown: a response cannot fire again until its cooldown has passed
  since it last fired. Bypassed by the skip-duration token.
- Hit rate: a matching, cooled-down response fires with this probability.
  Bypassed by the skip-hit-rate token unless the response is unskippable.

Each response splits into an immutable ResponseSpec and a TriggerState
cell holding its last trigger time behind its own lock.
"""

import math
import random
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, Iterator, List, Optional

from core.exceptions import ConfigError, ContentError
from core.logging import get_logger
from .content import CONTENT_KEYS, ResponseContent, decode_content
from .ruleset import RuleSet, parse_ruleset

logger = get_logger("rules.registry")

NEVER = datetime.min.replace(tzinfo=timezone.utc)
DEFAULT_COOLDOWN = timedelta(seconds=45)

RESPONSE_KEYS = ("name", "ruleset", "hit_rate", "cooldown", "unskippable") + CONTENT_KEYS


def _utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _contains_token(text: str, token: str) -> bool:
    """Verbatim, case-sensitive token check. An empty token never matches."""
    return bool(token) and token in text


def parse_hit_rate(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{field_name} must be a number, got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{field_name} must be between 0 and 1, got {value}")
    return float(value)


def parse_seconds(value: Any, field_name: str) -> timedelta:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{field_name} must be a number of seconds, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ConfigError(f"{field_name} must be a finite number of seconds, got {value}")
    if value < 0:
        raise ConfigError(f"{field_name} cannot be negative, got {value}")
    try:
        return timedelta(seconds=value)
    except OverflowError as e:
        raise ConfigError(f"{field_name} is too large: {value}") from e


def format_seconds(duration: timedelta) -> Any:
    """Seconds as an int when whole, so saved files stay tidy."""
    seconds = duration.total_seconds()
    return int(seconds) if seconds.is_integer() else seconds


@dataclass(frozen=True)
class GlobalDefaults:
    """
    Registry-wide gating defaults.

    Attributes:
        default_cooldown (timedelta): Cooldown for responses without one
        default_hit_rate (float): Hit rate for responses without one
        skip_hit_rate_text (str): Token that bypasses the hit-rate check
        skip_duration_text (str): Token that bypasses the cooldown check
    """
    default_cooldown: timedelta = DEFAULT_COOLDOWN
    default_hit_rate: float = 1.0
    skip_hit_rate_text: str = ""
    skip_duration_text: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlobalDefaults":
        if "default_hit_rate" not in data:
            raise ConfigError("Missing required setting: default_hit_rate")

        cooldown = DEFAULT_COOLDOWN
        if data.get("default_text_detect_cooldown") is not None:
            cooldown = parse_seconds(
                data["default_text_detect_cooldown"], "default_text_detect_cooldown"
            )

        tokens = {}
        for key in ("skip_hit_rate_text", "skip_duration_text"):
            value = data.get(key)
            if value is None:
                value = ""
            if not isinstance(value, str):
                raise ConfigError(f"{key} must be a string, got {value!r}")
            tokens[key] = value

        return cls(
            default_cooldown=cooldown,
            default_hit_rate=parse_hit_rate(data["default_hit_rate"], "default_hit_rate"),
            **tokens,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_text_detect_cooldown": format_seconds(self.default_cooldown),
            "default_hit_rate": self.default_hit_rate,
            "skip_hit_rate_text": self.skip_hit_rate_text,
            "skip_duration_text": self.skip_duration_text,
        }


@dataclass(frozen=True)
class ResponseSpec:
    """
    Immutable description of one response.

    Attributes:
        name (str): Used only for logging, not required to be unique
        ruleset (RuleSet): When the response is a candidate
        content (ResponseContent): What to send
        hit_rate (float): Overrides the default hit rate when set
        cooldown (timedelta): Overrides the default cooldown when set
        unskippable (bool): Ignore the skip-hit-rate token
        extra (dict): Unrecognized keys, written back unchanged on save
    """
    name: str
    ruleset: RuleSet
    content: ResponseContent
    hit_rate: Optional[float] = None
    cooldown: Optional[timedelta] = None
    unskippable: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResponseSpec":
        """
        Build a spec from a config entry.

        Raises:
            ConfigError: Missing name/ruleset or invalid overrides
            RuleParseError: Invalid rule text
            ContentError: Malformed content fields
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Response entry must be a mapping, got {data!r}")

        name = data.get("name")
        if name is None or isinstance(name, (bool, dict, list)):
            raise ConfigError("Response is missing a name", {"entry": data})
        name = str(name)

        rule_text = data.get("ruleset")
        if not isinstance(rule_text, str):
            raise ConfigError(f"Response `{name}` is missing its ruleset text")

        unskippable = data.get("unskippable", False)
        if not isinstance(unskippable, bool):
            raise ConfigError(f"Response `{name}`: unskippable must be true or false")

        hit_rate = data.get("hit_rate")
        cooldown = data.get("cooldown")

        return cls(
            name=name,
            ruleset=parse_ruleset(rule_text),
            content=decode_content(data),
            hit_rate=None if hit_rate is None else parse_hit_rate(hit_rate, f"{name}.hit_rate"),
            cooldown=None if cooldown is None else parse_seconds(cooldown, f"{name}.cooldown"),
            unskippable=unskippable,
            extra={key: value for key, value in data.items() if key not in RESPONSE_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.hit_rate is not None:
            data["hit_rate"] = self.hit_rate
        data["ruleset"] = self.ruleset.to_text()
        data.update(self.content.to_dict())
        if self.cooldown is not None:
            data["cooldown"] = format_seconds(self.cooldown)
        data["unskippable"] = self.unskippable
        data.update(self.extra)
        return data


class TriggerState:
    """
    When a response last fired.

    The lock is held across the cooldown check, the hit-rate draw and
    the update, so two concurrent messages cannot both fire the same
    response inside one cooldown window.
    """

    def __init__(self, last_triggered: datetime = NEVER):
        self.lock = threading.Lock()
        self.last_triggered = last_triggered

    def __repr__(self) -> str:
        return f"TriggerState(last_triggered={self.last_triggered!r})"


class RegisteredResponse:
    """A ResponseSpec paired with its TriggerState."""

    def __init__(self, spec: ResponseSpec, state: Optional[TriggerState] = None):
        self.spec = spec
        self.state = state or TriggerState()

    @property
    def name(self) -> str:
        return self.spec.name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegisteredResponse):
            return NotImplemented
        return self.spec == other.spec

    def __repr__(self) -> str:
        return f"RegisteredResponse({self.spec.name!r})"

    def try_trigger(
        self,
        text: str,
        defaults: GlobalDefaults,
        reference: str,
        now: datetime,
        rng,
    ) -> Optional[ResponseContent]:
        """
        Run the gates for one message.

        Returns:
            The content if the response fires, None otherwise. State is
            only written when the response fires.
        """
        spec = self.spec
        if not spec.ruleset.matches(text):
            return None

        cooldown = spec.cooldown if spec.cooldown is not None else defaults.default_cooldown

        with self.state.lock:
            elapsed = now - self.state.last_triggered
            if elapsed <= cooldown and not _contains_token(text, defaults.skip_duration_text):
                logger.debug(
                    f"Cooldown `{spec.name}` {reference} remaining {cooldown - elapsed}"
                )
                return None

            hit_rate = spec.hit_rate if spec.hit_rate is not None else defaults.default_hit_rate
            missed = rng.random() >= hit_rate
            forced = not spec.unskippable and _contains_token(text, defaults.skip_hit_rate_text)
            if missed and not forced:
                logger.debug(f"Miss `{spec.name}` {reference} {now.isoformat()}")
                return None

            logger.debug(f"Hit `{spec.name}` {reference} {now.isoformat()}")
            self.state.last_triggered = max(self.state.last_triggered, now)

        return spec.content


class ResponseRegistry:
    """
    Ordered responses plus global defaults.

    Example:
        registry = ResponseRegistry.from_dicts(entries, GlobalDefaults())
        content = registry.evaluate("rust is great", "msg-1")
        if content is not None:
            render(content)
    """

    def __init__(
        self,
        responses: Optional[List[RegisteredResponse]] = None,
        defaults: Optional[GlobalDefaults] = None,
        skipped: Optional[Dict[int, Dict[str, Any]]] = None,
    ):
        """
        Args:
            responses: Registered responses in declaration order
            defaults: Global defaults
            skipped: Entries dropped for malformed content, keyed by their
                position in the original list; written back unchanged by
                to_dicts()
        """
        self.responses: List[RegisteredResponse] = list(responses or [])
        self.defaults = defaults or GlobalDefaults()
        self.skipped: Dict[int, Dict[str, Any]] = dict(skipped or {})

    @classmethod
    def from_dicts(
        cls,
        entries: List[Dict[str, Any]],
        defaults: GlobalDefaults,
        previous: Optional["ResponseRegistry"] = None,
    ) -> "ResponseRegistry":
        """
        Build a registry from decoded config entries.

        A response with malformed content is skipped with a warning and kept
        as its raw mapping for saving; every other problem aborts the build.

        Args:
            entries: Response mappings in declaration order
            defaults: Global defaults
            previous: Registry whose trigger states should be carried over

        Returns:
            New ResponseRegistry
        """
        specs = []
        skipped = {}
        for index, entry in enumerate(entries):
            try:
                specs.append(ResponseSpec.from_dict(entry))
            except ContentError as e:
                # Only raised once the entry is known to be a mapping
                logger.warning(f"Skipping response `{entry.get('name', index)}`: {e}")
                skipped[index] = dict(entry)

        registry = cls([RegisteredResponse(spec) for spec in specs], defaults, skipped)
        if previous is not None:
            registry.carry_state_from(previous)
        return registry

    def carry_state_from(self, previous: "ResponseRegistry") -> int:
        """
        Reuse trigger states from an older registry, matched by name.

        Responses sharing a name are paired in declaration order. Must be
        called before the registry is published to other threads.

        Returns:
            Number of states carried over
        """
        pool: Dict[str, Deque[TriggerState]] = defaultdict(deque)
        for response in previous.responses:
            pool[response.name].append(response.state)

        carried = 0
        for response in self.responses:
            states = pool.get(response.name)
            if states:
                response.state = states.popleft()
                carried += 1
        return carried

    def evaluate(
        self,
        message_text: str,
        message_reference: str = "",
        now: Optional[datetime] = None,
        rng=None,
    ) -> Optional[ResponseContent]:
        """
        Select the response for a message.

        Args:
            message_text: Raw message text
            message_reference: Link or id of the message, for logs
            now: Message time (defaults to current UTC time)
            rng: Object with a random() method (defaults to the random module)

        Returns:
            Content of the first response that fires, or None
        """
        now = _utc(now) if now is not None else datetime.now(timezone.utc)
        rng = rng or random

        for response in self.responses:
            content = response.try_trigger(
                message_text, self.defaults, message_reference, now, rng
            )
            if content is not None:
                return content
        return None

    def find(self, name: str) -> Optional[RegisteredResponse]:
        for response in self.responses:
            if response.name == name:
                return response
        return None

    def names(self) -> List[str]:
        return [response.name for response in self.responses]

    def cooldown_remaining(self, name: str, now: Optional[datetime] = None) -> Optional[timedelta]:
        """
        Time until a response may fire again.

        Returns:
            Remaining cooldown (zero when ready), or None for unknown names
        """
        response = self.find(name)
        if response is None:
            return None

        now = _utc(now) if now is not None else datetime.now(timezone.utc)
        spec = response.spec
        cooldown = spec.cooldown if spec.cooldown is not None else self.defaults.default_cooldown
        with response.state.lock:
            elapsed = now - response.state.last_triggered
        return max(cooldown - elapsed, timedelta(0))

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Serialize every response, skipped entries back in their original place."""
        entries = [response.spec.to_dict() for response in self.responses]
        for index in sorted(self.skipped):
            entries.insert(index, dict(self.skipped[index]))
        return entries

    def __len__(self) -> int:
        return len(self.responses)

    def __iter__(self) -> Iterator[RegisteredResponse]:
        return iter(self.responses)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResponseRegistry):
            return NotImplemented
        return (
            self.defaults == other.defaults
            and self.responses == other.responses
            and self.skipped == other.skipped
        )
