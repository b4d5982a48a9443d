"""
Shared test fixtures
====================

Configuration files and helpers used across the test modules.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


SAMPLE_CONFIG = """\
default_text_detect_cooldown: 45
default_hit_rate: 1.0
skip_hit_rate_text: "kf please"
skip_duration_text: "kf now"
guild_id: 123456789109876
help_text: "Ask in #help"
responses:
  - name: "1984"
    ruleset: |
      r 1234
      !r 4312
    content: "literally 1984"
  - name: rust
    ruleset: r rust
    content:
      - "RUST MENTIONED"
      - "Rust? Oh, you mean the game?"
    hit_rate: 0.5
    cooldown: 10
  - name: tkinter
    ruleset: r tkinter
    content: "TKINTER MENTIONED"
    path: ./assets/tkinter.png
    unskippable: true
webhook:
  url: ""
  timeout: 5.0
watch:
  enabled: false
  poll_interval: 0.5
"""

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedRandom:
    """Stands in for the random module with a fixed draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[0]


@pytest.fixture
def config_file(tmp_path):
    """Write the sample configuration and return its path."""
    path = tmp_path / "config.yaml"
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    return path
