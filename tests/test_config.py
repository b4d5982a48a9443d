"""
Test Configuration Module
========================

Unit tests for configuration loading, validation and saving.
"""

import pytest
from datetime import timedelta
from pathlib import Path

# Add parent directory to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import (
    Configuration, WatchConfig, WebConfig, WebhookConfig,
    config_from_dict, create_default_config, load_config, save_config
)
from core.exceptions import ConfigError, ContentError, ParseError, PersistError, RuleParseError
from rules.content import Image, NoResponse, RandomText, Text, TextAndImage, decode_content


class TestSections:
    """Tests for the service section dataclasses."""

    def test_default_values(self):
        """Test default section values."""
        assert WebConfig().port == 8080
        assert WebhookConfig().url == ""
        assert WatchConfig().enabled is True

    def test_invalid_port(self):
        """Test invalid port raises error."""
        with pytest.raises(ConfigError):
            WebConfig(port=0).validate()

    def test_invalid_timeout(self):
        """Test non-positive timeout raises error."""
        with pytest.raises(ConfigError):
            WebhookConfig(timeout=0).validate()

    def test_invalid_poll_interval(self):
        """Test non-positive poll interval raises error."""
        with pytest.raises(ConfigError):
            WatchConfig(poll_interval=-1).validate()

    def test_wrong_types_rejected(self):
        """Test ill-typed values raise ConfigError rather than TypeError."""
        with pytest.raises(ConfigError):
            WebhookConfig(timeout="5").validate()
        with pytest.raises(ConfigError):
            WatchConfig(poll_interval=None).validate()
        with pytest.raises(ConfigError):
            WatchConfig(poll_interval=float("nan")).validate()
        with pytest.raises(ConfigError):
            WebConfig(port=True).validate()

    def test_non_string_setting_name(self):
        """Test a numeric key inside a section is rejected."""
        data = {"default_hit_rate": 1.0, "responses": [], "web": {1: 2}}
        with pytest.raises(ConfigError):
            config_from_dict(data)

    def test_method_name_setting_ignored(self):
        """Test a key naming a section method does not replace it."""
        data = {"default_hit_rate": 1.0, "responses": [], "web": {"validate": 1, "port": 9000}}

        config = config_from_dict(data)

        assert config.web.port == 9000
        config.web.validate()


class TestContentDecoding:
    """Tests for recognising content variants by shape."""

    def test_text_and_image(self):
        content = decode_content({"content": "hi", "path": "a.png"})
        assert content == TextAndImage(content="hi", path="a.png")

    def test_random_text(self):
        content = decode_content({"content": ["a", "b"]})
        assert content == RandomText(content=("a", "b"))

    def test_text(self):
        assert decode_content({"content": "hi"}) == Text(content="hi")

    def test_image(self):
        assert decode_content({"path": "a.png"}) == Image(path="a.png")

    def test_no_response(self):
        assert decode_content({"name": "quiet"}) == NoResponse()

    def test_list_with_path_rejected(self):
        with pytest.raises(ContentError):
            decode_content({"content": ["a"], "path": "a.png"})

    def test_empty_list_rejected(self):
        with pytest.raises(ContentError):
            decode_content({"content": []})

    def test_wrong_type_rejected(self):
        with pytest.raises(ContentError):
            decode_content({"content": 42})


class TestLoadConfig:
    """Tests for loading configuration files."""

    def test_load_sample(self, config_file):
        """Test the sample file loads with defaults and responses."""
        config = load_config(str(config_file))

        defaults = config.defaults
        assert defaults.default_cooldown == timedelta(seconds=45)
        assert defaults.default_hit_rate == 1.0
        assert defaults.skip_hit_rate_text == "kf please"
        assert defaults.skip_duration_text == "kf now"

        assert config.registry.names() == ["1984", "rust", "tkinter"]
        assert config.config_path == str(config_file)

    def test_content_variants(self, config_file):
        """Test each response decodes to the expected variant."""
        config = load_config(str(config_file))
        specs = [response.spec for response in config.registry]

        assert specs[0].content == Text(content="literally 1984")
        assert isinstance(specs[1].content, RandomText)
        assert specs[1].hit_rate == 0.5
        assert specs[1].cooldown == timedelta(seconds=10)
        assert specs[2].content == TextAndImage(
            content="TKINTER MENTIONED", path="./assets/tkinter.png"
        )
        assert specs[2].unskippable is True

    def test_unknown_keys_preserved(self, config_file):
        """Test top-level keys the service does not use are kept."""
        config = load_config(str(config_file))

        assert config.extra == {"guild_id": 123456789109876, "help_text": "Ask in #help"}

    def test_sections(self, config_file):
        """Test service sections are read."""
        config = load_config(str(config_file))

        assert config.webhook.timeout == 5.0
        assert config.watch.enabled is False
        assert config.watch.poll_interval == 0.5
        assert config.web == WebConfig()

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_bad_yaml(self, tmp_path):
        """Test malformed YAML raises ParseError."""
        path = tmp_path / "config.yaml"
        path.write_text("responses: [unclosed\n", encoding="utf-8")

        with pytest.raises(ParseError):
            load_config(str(path))

    def test_empty_file(self, tmp_path):
        """Test an empty file raises ParseError."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ParseError):
            load_config(str(path))

    def test_top_level_list(self):
        """Test a non-mapping document raises ParseError."""
        with pytest.raises(ParseError):
            config_from_dict(["not", "a", "mapping"])

    def test_missing_responses(self):
        """Test a config without responses raises ConfigError."""
        with pytest.raises(ConfigError):
            config_from_dict({"default_hit_rate": 1.0})

    def test_missing_default_hit_rate(self):
        """Test default_hit_rate is required."""
        with pytest.raises(ConfigError):
            config_from_dict({"responses": []})

    def test_bad_ruleset_aborts_load(self):
        """Test an invalid rule set fails the whole load."""
        data = {
            "default_hit_rate": 1.0,
            "responses": [{"name": "bad", "ruleset": "r (unclosed", "content": "x"}],
        }
        with pytest.raises(RuleParseError):
            config_from_dict(data)

    def test_bad_content_skips_response(self):
        """Test a response with malformed content is skipped."""
        data = {
            "default_hit_rate": 1.0,
            "responses": [
                {"name": "broken", "ruleset": "r x", "content": {"nested": True}},
                {"name": "ok", "ruleset": "r x", "content": "fine"},
            ],
        }
        config = config_from_dict(data)
        assert config.registry.names() == ["ok"]

    def test_env_override(self, config_file, monkeypatch):
        """Test environment variables override service sections."""
        monkeypatch.setenv("RESPONDER_WEB_PORT", "9000")
        monkeypatch.setenv("RESPONDER_WEBHOOK_URL", "http://bridge.local/reply")

        config = load_config(str(config_file))

        assert config.web.port == 9000
        assert config.webhook.url == "http://bridge.local/reply"

    def test_env_override_disabled(self, config_file, monkeypatch):
        """Test overrides are skipped when load_env is False."""
        monkeypatch.setenv("RESPONDER_WEB_PORT", "9000")

        config = load_config(str(config_file), load_env=False)

        assert config.web.port == 8080

    def test_invalid_env_value(self, config_file, monkeypatch):
        """Test a non-numeric port override raises ConfigError."""
        monkeypatch.setenv("RESPONDER_WEB_PORT", "eighty")

        with pytest.raises(ConfigError):
            load_config(str(config_file))

    def test_default_path_from_env(self, config_file, monkeypatch):
        """Test RESPONDER_CONFIG selects the file."""
        monkeypatch.setenv("RESPONDER_CONFIG", str(config_file))

        config = load_config()

        assert len(config.registry) == 3


class TestSaveConfig:
    """Tests for saving configuration."""

    def test_save_and_load(self, config_file, tmp_path):
        """Test a saved configuration loads back equal."""
        config = load_config(str(config_file), load_env=False)
        out = tmp_path / "saved.yaml"

        save_config(config, str(out))
        loaded = load_config(str(out), load_env=False)

        assert loaded == config
        assert loaded.to_dict() == config.to_dict()

    def test_multiline_ruleset_written_as_block(self, config_file, tmp_path):
        """Test multi-line rule text is written as a YAML block."""
        config = load_config(str(config_file), load_env=False)
        out = tmp_path / "saved.yaml"

        save_config(config, str(out))
        text = out.read_text(encoding="utf-8")

        assert "ruleset: |" in text
        assert "guild_id: 123456789109876" in text

    def test_no_temp_file_left(self, config_file):
        """Test the temporary file is moved into place."""
        config = load_config(str(config_file), load_env=False)

        save_config(config)

        assert not (config_file.parent / ".config.yaml.tmp").exists()

    def test_unwritable_path(self, config_file, tmp_path):
        """Test a write failure raises PersistError."""
        config = load_config(str(config_file), load_env=False)
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")

        with pytest.raises(PersistError):
            save_config(config, str(blocker / "config.yaml"))

    def test_create_default_config(self, tmp_path):
        """Test the example configuration loads back."""
        path = tmp_path / "example.yaml"

        created = create_default_config(str(path))
        loaded = load_config(str(path), load_env=False)

        assert isinstance(created, Configuration)
        assert loaded.registry.names() == ["rust", "tkinter", "arch", "1984"]
        assert loaded == created


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
