"""Tests for wiring server requests through the application loop."""

import asyncio
import time

from linecue.config import DEFAULT_CONFIG
from linecue.main import LinecueApp, build_parser
from linecue.server import WebServer
from linecue.threaded_tracker import ThreadedTracker
from linecue.transcription_provider import TranscriptionResult


class FakeWebSocket:
    """Records messages sent to a client."""

    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)


def wait_for_result(tracker, predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        result = tracker.get_latest_result(timeout=0.1)
        if result is not None and predicate(result):
            return result
    return None


class TestApplyServerRequests:
    """Test forwarding of script and navigation requests."""

    def setup_method(self):
        self.app = LinecueApp()
        self.app.server = WebServer()
        self.app.tracker = ThreadedTracker()

    def teardown_method(self):
        self.app.tracker.shutdown()

    def test_script_is_configured(self):
        """A new script reaches the tracker and clears the transcript."""
        self.app.transcript.add(TranscriptionResult("旧的", is_partial=False))
        self.app.server.set_script("你好世界\n今天天气很好")

        self.app._apply_server_requests()

        assert not self.app.server.script_changed
        assert self.app.transcript.snapshot == ""
        result = wait_for_result(self.app.tracker, lambda r: r.line_count == 2)
        assert result is not None

    def test_navigation_is_forwarded(self):
        """Gestures become tracker commands in order."""
        self.app.server.set_script("一二\n三四\n五六")
        self.app._apply_server_requests()
        wait_for_result(self.app.tracker, lambda r: r.line_count == 3)

        asyncio.run(self.app.server._handle_ws_message(
            FakeWebSocket(), {"type": "jump_to_line", "lineIndex": 2}))
        asyncio.run(self.app.server._handle_ws_message(
            FakeWebSocket(), {"type": "previous_line"}))
        self.app._apply_server_requests()

        result = wait_for_result(
            self.app.tracker, lambda r: r.position.line_index == 2)
        assert result is not None
        result = wait_for_result(
            self.app.tracker, lambda r: r.position.line_index == 1)
        assert result is not None

    def test_display_settings_are_forwarded(self):
        """Changing pastLines/futureLines updates the tracker."""
        self.app.server.settings["futureLines"] = 3

        self.app._apply_server_requests()

        assert self.app.tracker.future_lines == 3

    def test_invalid_display_settings_are_ignored(self):
        """A non-numeric line count keeps the previous values."""
        self.app.server.settings["pastLines"] = "two"

        self.app._apply_server_requests()

        assert self.app.tracker.past_lines == 1
        assert self.app.tracker.future_lines == 1


class TestSendResults:
    """Test broadcasting tracker results."""

    def test_changed_positions_are_broadcast(self):
        """Only results that move the position are sent."""
        app = LinecueApp()
        app.server = WebServer()
        app.tracker = ThreadedTracker(["nihao", "jintian"])
        ws = FakeWebSocket()
        app.server.websockets.add(ws)
        try:
            app.tracker.submit_transcription("nihao", force=True)
            app.tracker.submit_transcription("nihao", force=True)
            deadline = time.time() + 2.0
            while time.time() < deadline and len(ws.sent) < 1:
                asyncio.run(app._send_results())
                time.sleep(0.05)
            time.sleep(0.1)
            asyncio.run(app._send_results())

            assert len(ws.sent) == 1
            assert ws.sent[0]["charIndex"] == 4
        finally:
            app.tracker.shutdown()


class TestBuildParser:
    """Test CLI defaults."""

    def test_defaults_come_from_config(self):
        """Unset options take their values from the config."""
        config = dict(DEFAULT_CONFIG, port=9123)

        args = build_parser(config).parse_args([])

        assert args.port == 9123
        assert args.provider == "vosk"
        assert args.model_id == "vosk-cn-small"
        assert args.script is None
        assert not args.verbose

    def test_options_override_config(self):
        """Command line options win over the config."""
        args = build_parser(dict(DEFAULT_CONFIG)).parse_args(
            ["--model-id", "vosk-cn-large", "-p", "8080", "-s", "script.md"])

        assert args.model_id == "vosk-cn-large"
        assert args.port == 8080
        assert str(args.script) == "script.md"
