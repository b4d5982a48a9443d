"""
Configuration Management - YAML configuration with environment overrides
=======================================================================

This module handles all configuration aspects including:
- Loading the responder configuration from a YAML file
- Global gating defaults and the ordered response list
- Service sections (web server, reply webhook, file watcher)
- Environment variable overrides for the service sections
- Lossless saving (unknown top-level keys are written back unchanged)

A loaded Configuration is an immutable snapshot; reloading builds a new
one. Only the per-response trigger times inside it change at runtime.
"""

import math
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rules.registry import GlobalDefaults, ResponseRegistry
from .exceptions import ConfigError, ParseError, PersistError
from .logging import get_logger

logger = get_logger("core.config")

DEFAULT_CONFIG_FILENAME = "config.yaml"

DEFAULTS_KEYS = (
    "default_text_detect_cooldown",
    "default_hit_rate",
    "skip_hit_rate_text",
    "skip_duration_text",
)
SECTION_KEYS = ("web", "webhook", "watch")
KNOWN_KEYS = DEFAULTS_KEYS + ("responses",) + SECTION_KEYS


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not isinstance(value, float) or math.isfinite(value)


@dataclass
class WebConfig:
    """
    HTTP server settings.

    The web surface receives inbound messages from the chat platform
    bridge and exposes reload/save for operators.
    """
    host: str = "127.0.0.1"
    port: int = 8080

    def validate(self) -> None:
        if not isinstance(self.host, str) or not self.host:
            raise ConfigError(f"web.host must be a non-empty string, got {self.host!r}")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            raise ConfigError(f"Invalid web port: {self.port!r}")


@dataclass
class WebhookConfig:
    """
    Outbound reply settings.

    Replies are posted to ``url``; an empty url means replies are only
    logged.
    """
    url: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 10.0

    def validate(self) -> None:
        if not isinstance(self.url, str):
            raise ConfigError(f"webhook.url must be a string, got {self.url!r}")
        if not isinstance(self.headers, dict) or not all(
            isinstance(key, str) and isinstance(value, str) for key, value in self.headers.items()
        ):
            raise ConfigError("webhook.headers must be a mapping of strings")
        if not _is_number(self.timeout) or self.timeout <= 0:
            raise ConfigError(f"webhook.timeout must be a positive number, got {self.timeout!r}")


@dataclass
class WatchConfig:
    """Config file watcher settings."""
    enabled: bool = True
    poll_interval: float = 1.0

    def validate(self) -> None:
        if not isinstance(self.enabled, bool):
            raise ConfigError(f"watch.enabled must be true or false, got {self.enabled!r}")
        if not _is_number(self.poll_interval) or self.poll_interval <= 0:
            raise ConfigError(
                f"watch.poll_interval must be a positive number, got {self.poll_interval!r}"
            )


@dataclass(frozen=True)
class Configuration:
    """
    One configuration generation.

    Attributes:
        registry (ResponseRegistry): Responses and global defaults
        web (WebConfig): HTTP server settings
        webhook (WebhookConfig): Reply delivery settings
        watch (WatchConfig): File watcher settings
        extra (dict): Top-level keys this service does not use
            (guild id, help text, ...), kept for saving
        config_path (str): File this configuration came from
    """
    registry: ResponseRegistry = field(default_factory=ResponseRegistry)
    web: WebConfig = field(default_factory=WebConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    extra: Dict[str, Any] = field(default_factory=dict)
    config_path: str = field(default="", compare=False)

    @property
    def defaults(self) -> GlobalDefaults:
        return self.registry.defaults

    def validate(self) -> None:
        """
        Validate all service sections.

        Raises:
            ConfigError: If any section is invalid
        """
        self.web.validate()
        self.webhook.validate()
        self.watch.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk mapping. Trigger times are not included."""
        data = self.defaults.to_dict()
        data["responses"] = self.registry.to_dicts()
        data["web"] = asdict(self.web)
        data["webhook"] = asdict(self.webhook)
        data["watch"] = asdict(self.watch)
        data.update(self.extra)
        return data


class _ConfigDumper(yaml.SafeDumper):
    """Safe dumper that writes multi-line strings (rule sets) as blocks."""


def _represent_str(dumper: yaml.SafeDumper, value: str):
    if "\n" in value:
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", value)


_ConfigDumper.add_representer(str, _represent_str)


def get_default_config_path() -> Path:
    """
    Get the default configuration file path.

    Returns:
        ``$RESPONDER_CONFIG`` if set, else ``config.yaml`` in the working
        directory
    """
    if "RESPONDER_CONFIG" in os.environ:
        return Path(os.environ["RESPONDER_CONFIG"])
    return Path.cwd() / DEFAULT_CONFIG_FILENAME


def _build_section(section_cls, raw: Any, name: str):
    section = section_cls()
    if raw is None:
        return section
    if not isinstance(raw, dict):
        raise ConfigError(f"Section `{name}` must be a mapping")
    known = {f.name for f in fields(section_cls)}
    for key, value in raw.items():
        if not isinstance(key, str):
            raise ConfigError(f"Setting names in `{name}` must be strings, got {key!r}")
        if key in known:
            setattr(section, key, value)
        else:
            logger.warning(f"Ignoring unknown setting {name}.{key}")
    return section


def config_from_dict(
    data: Dict[str, Any],
    previous: Optional[Configuration] = None,
    config_path: str = "",
    load_env: bool = False,
) -> Configuration:
    """
    Build a Configuration from a decoded mapping.

    Args:
        data: Top-level mapping as read from YAML
        previous: Configuration whose trigger times should be carried over
        config_path: Path recorded on the result
        load_env: Whether to apply environment variable overrides

    Returns:
        Validated Configuration

    Raises:
        ConfigError: If defaults or responses are missing or invalid
    """
    if not isinstance(data, dict):
        raise ParseError("Config file must contain a mapping at the top level")

    defaults = GlobalDefaults.from_dict(data)

    responses = data.get("responses")
    if not isinstance(responses, list):
        raise ConfigError("Config is missing the `responses` list")

    registry = ResponseRegistry.from_dicts(
        responses,
        defaults,
        previous=previous.registry if previous is not None else None,
    )

    web = _build_section(WebConfig, data.get("web"), "web")
    webhook = _build_section(WebhookConfig, data.get("webhook"), "webhook")
    watch = _build_section(WatchConfig, data.get("watch"), "watch")

    if load_env:
        _apply_env_overrides(web, webhook, watch)

    config = Configuration(
        registry=registry,
        web=web,
        webhook=webhook,
        watch=watch,
        extra={key: value for key, value in data.items() if key not in KNOWN_KEYS},
        config_path=config_path,
    )
    config.validate()
    return config


def load_config(
    config_path: Optional[str] = None,
    load_env: bool = True,
    previous: Optional[Configuration] = None,
) -> Configuration:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to configuration file (optional)
        load_env: Whether to apply environment variable overrides
        previous: Configuration whose trigger times should be carried over

    Returns:
        Configuration loaded from the file

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
        ParseError: If the YAML or a rule set is malformed
    """
    yaml_path = Path(config_path) if config_path else get_default_config_path()

    if not yaml_path.exists():
        raise ConfigError("Config file not found", {"path": str(yaml_path)})

    try:
        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ParseError(f"Failed to parse config file: {e}", {"path": str(yaml_path)}) from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}", {"path": str(yaml_path)}) from e

    if data is None:
        raise ParseError("Config file is empty", {"path": str(yaml_path)})

    config = config_from_dict(
        data, previous=previous, config_path=str(yaml_path), load_env=load_env
    )
    logger.info(f"Loaded {len(config.registry)} response(s) from {yaml_path}")
    return config


def _apply_env_overrides(web: WebConfig, webhook: WebhookConfig, watch: WatchConfig) -> None:
    """
    Apply environment variable overrides to the service sections.

    Environment variables follow the pattern: RESPONDER_SECTION_KEY
    For example: RESPONDER_WEB_PORT, RESPONDER_WEBHOOK_URL
    """
    sections = {"web": web, "webhook": webhook, "watch": watch}
    env_mappings = {
        "RESPONDER_WEB_HOST": ("web", "host"),
        "RESPONDER_WEB_PORT": ("web", "port", int),
        "RESPONDER_WEBHOOK_URL": ("webhook", "url"),
        "RESPONDER_WEBHOOK_TIMEOUT": ("webhook", "timeout", float),
        "RESPONDER_WATCH_ENABLED": ("watch", "enabled", bool),
        "RESPONDER_WATCH_POLL_INTERVAL": ("watch", "poll_interval", float),
    }

    for env_var, mapping in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str

        if converter is bool:
            converted = value.lower() in ("true", "1", "yes", "on")
        else:
            try:
                converted = converter(value)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_var}: {value!r}") from e

        setattr(sections[section], key, converted)


def save_config(config: Configuration, config_path: Optional[str] = None) -> Path:
    """
    Save configuration to its YAML file.

    The file is written to a temporary sibling and moved into place, so
    readers (and the watcher) never see a half-written file.

    Args:
        config: Configuration to save
        config_path: Path to save to (defaults to config.config_path)

    Returns:
        Path that was written

    Raises:
        PersistError: If the configuration cannot be written
    """
    target = config_path or config.config_path
    yaml_path = Path(target) if target else get_default_config_path()
    tmp_path = yaml_path.with_name(f".{yaml_path.name}.tmp")

    try:
        yaml_path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.dump(
            config.to_dict(),
            Dumper=_ConfigDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, yaml_path)
    except (OSError, yaml.YAMLError) as e:
        raise PersistError(f"Failed to save config file: {e}", {"path": str(yaml_path)}) from e

    logger.info(f"Saved {len(config.registry)} response(s) to {yaml_path}")
    return yaml_path


DEFAULT_RESPONSES = [
    {
        "name": "rust",
        "ruleset": "r rust",
        "content": [
            "RUST MENTIONED :crab: :crab: :crab:",
            "Rust is simply the best programming language. Nothing else can compare.",
            "Rust? Oh, you mean the game?",
        ],
    },
    {
        "name": "tkinter",
        "ruleset": "r tkinter",
        "content": "TKINTER MENTIONED",
        "path": "./assets/tkinter.png",
    },
    {"name": "arch", "ruleset": "r arch", "content": "I use Arch btw"},
    {
        "name": "1984",
        "ruleset": "r 1984\n!r 1984\\d",
        "content": "literally 1984",
        "hit_rate": 0.5,
        "cooldown": 120,
    },
]


def create_default_config(config_path: Optional[str] = None) -> Configuration:
    """
    Write an example configuration file.

    Args:
        config_path: Where to write it (defaults to get_default_config_path())

    Returns:
        The example Configuration
    """
    yaml_path = Path(config_path) if config_path else get_default_config_path()
    data = {
        "default_text_detect_cooldown": 45,
        "default_hit_rate": 1.0,
        "skip_hit_rate_text": "",
        "skip_duration_text": "",
        "responses": DEFAULT_RESPONSES,
    }
    config = config_from_dict(data, config_path=str(yaml_path))
    save_config(config)
    return config
