"""
Test Dispatcher and Renderers
=============================

Unit tests for turning decisions into replies and delivering them.
"""

import io
import json
import sys
from datetime import timedelta
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import config_from_dict
from core.exceptions import RenderError
from core.logging import get_log_context
from core.store import ConfigStore
from rules.content import RandomText
from services.dispatcher import Dispatcher, InboundMessage, Reply, resolve_reply
from services.renderers import (
    ConsoleRenderer, LogRenderer, Renderer, WebhookRenderer, create_renderer
)

from conftest import T0, FixedRandom


class RecordingRenderer(Renderer):
    """Collects calls instead of sending anything."""

    def __init__(self):
        self.calls = []

    def send_text(self, reference, text):
        self.calls.append(("text", reference, text))

    def send_image(self, reference, path):
        self.calls.append(("image", reference, path))

    def send_text_and_image(self, reference, text, path):
        self.calls.append(("text_and_image", reference, text, path))


class FailingRenderer(RecordingRenderer):
    def send_text(self, reference, text):
        raise RenderError("bridge unavailable", reference=reference)


@pytest.fixture
def store(config_file):
    return ConfigStore.open(str(config_file), load_env=False)


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def dispatcher(store, renderer):
    return Dispatcher(store, renderer, rng=FixedRandom(0.0))


def make_store(responses):
    return ConfigStore(config_from_dict({"default_hit_rate": 1.0, "responses": responses}))


class TestInboundMessage:
    """Tests for InboundMessage."""

    def test_dict_round_trip(self):
        message = InboundMessage(text="I love rust", reference="msg-1", timestamp=T0)

        restored = InboundMessage.from_dict(message.to_dict())

        assert restored == message

    def test_defaults(self):
        message = InboundMessage.from_dict({"text": "hi"})

        assert message.reference == ""
        assert message.timestamp.tzinfo is not None


class TestResolveReply:
    """Tests for resolve_reply."""

    def test_random_text_picks_entry(self):
        reply = resolve_reply(RandomText(content=("a", "b")), FixedRandom(0.0))
        assert reply == Reply(kind="random_text", text="a")

    def test_empty_random_text(self):
        with pytest.raises(RenderError):
            resolve_reply(RandomText(content=()))


class TestDispatcher:
    """Tests for Dispatcher.handle."""

    def test_text(self, dispatcher, renderer):
        reply = dispatcher.handle(InboundMessage("call 1234", "m1", T0))

        assert reply == Reply(kind="text", text="literally 1984")
        assert renderer.calls == [("text", "m1", "literally 1984")]

    def test_forbidden_pattern(self, dispatcher, renderer):
        assert dispatcher.handle(InboundMessage("1234 4312", "m1", T0)) is None
        assert renderer.calls == []

    def test_random_text(self, dispatcher, renderer):
        reply = dispatcher.handle(InboundMessage("rust", "m1", T0))

        assert reply.kind == "random_text"
        assert renderer.calls == [("text", "m1", "RUST MENTIONED")]

    def test_text_and_image(self, dispatcher, renderer):
        dispatcher.handle(InboundMessage("tkinter", "m1", T0))

        assert renderer.calls == [
            ("text_and_image", "m1", "TKINTER MENTIONED", "./assets/tkinter.png")
        ]

    def test_image_and_silent(self, renderer):
        store = make_store([
            {"name": "quiet", "ruleset": "r shh"},
            {"name": "pic", "ruleset": "r pic", "path": "cat.png"},
        ])
        dispatcher = Dispatcher(store, renderer)

        silent = dispatcher.handle(InboundMessage("shh", "m1", T0))
        image = dispatcher.handle(InboundMessage("pic", "m2", T0))

        assert silent == Reply(kind="none")
        assert image == Reply(kind="image", image_path="cat.png")
        assert renderer.calls == [("image", "m2", "cat.png")]

    def test_cooldown_across_messages(self, dispatcher, renderer):
        dispatcher.handle(InboundMessage("1234", "m1", T0))
        second = dispatcher.handle(InboundMessage("1234", "m2", T0 + timedelta(seconds=1)))

        assert second is None
        assert len(renderer.calls) == 1

    def test_render_error_propagates(self, store):
        dispatcher = Dispatcher(store, FailingRenderer())

        with pytest.raises(RenderError):
            dispatcher.handle(InboundMessage("1234", "m1", T0))

        assert get_log_context() == {}

    def test_uses_latest_snapshot(self, store, renderer):
        dispatcher = Dispatcher(store, renderer)
        store.replace(config_from_dict({
            "default_hit_rate": 1.0,
            "responses": [{"name": "arch", "ruleset": "r arch", "content": "btw"}],
        }))

        assert dispatcher.handle(InboundMessage("1234", "m1", T0)) is None
        assert dispatcher.handle(InboundMessage("arch", "m2", T0)).text == "btw"


class TestWebhookRenderer:
    """Tests for WebhookRenderer."""

    def _renderer(self, handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return WebhookRenderer("http://bridge.local/reply", headers={"X-Token": "t"}, client=client)

    def test_send_text(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        self._renderer(handler).send_text("msg-1", "I use Arch btw")

        assert len(requests) == 1
        assert requests[0].headers["X-Token"] == "t"
        assert json.loads(requests[0].content) == {"reference": "msg-1", "text": "I use Arch btw"}

    def test_http_error(self):
        renderer = self._renderer(lambda request: httpx.Response(500))

        with pytest.raises(RenderError) as exc_info:
            renderer.send_text("msg-1", "hi")

        assert exc_info.value.reference == "msg-1"

    def test_missing_image(self, tmp_path):
        renderer = self._renderer(lambda request: httpx.Response(200))

        with pytest.raises(RenderError):
            renderer.send_image("msg-1", str(tmp_path / "missing.png"))

    def test_send_text_and_image(self, tmp_path):
        image = tmp_path / "tkinter.png"
        image.write_bytes(b"\x89PNG fake")
        bodies = []

        def handler(request):
            bodies.append(request.read())
            return httpx.Response(200)

        self._renderer(handler).send_text_and_image("msg-1", "TKINTER MENTIONED", str(image))

        body = bodies[0]
        assert b'name="file"; filename="tkinter.png"' in body
        assert b"TKINTER MENTIONED" in body
        assert b"\x89PNG fake" in body


class TestOtherRenderers:
    """Tests for the console renderer and renderer selection."""

    def test_console_output(self):
        stream = io.StringIO()
        renderer = ConsoleRenderer(stream)

        renderer.send_text_and_image("cli-1", "hello", "a.png")

        assert stream.getvalue() == "  Reply: hello\n  Image: a.png\n"

    def test_create_renderer(self):
        assert isinstance(create_renderer(""), LogRenderer)
        assert isinstance(create_renderer("http://bridge.local/reply"), WebhookRenderer)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
