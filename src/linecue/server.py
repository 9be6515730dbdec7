# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server for the linecue display layer.
Accepts scripts and navigation gestures, and pushes position updates over
WebSocket. Requests are recorded here and applied to the tracker by the
application loop, so the tracker is only ever driven from one place.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any

from aiohttp import web

from .audio import get_input_devices
from .config import DEFAULT_CONFIG, DisplaySettings, load_config, save_config, update_config_display
from .script_parser import prepare_script
from .threaded_tracker import TrackingResult

logger = logging.getLogger(__name__)

# Navigation request kinds recorded for the application loop
NAV_JUMP: str = "jump_to_line"
NAV_NEXT: str = "next_line"
NAV_PREVIOUS: str = "previous_line"
NAV_RESET: str = "reset"

# Display settings that must be non-negative integers
LINE_COUNT_SETTINGS: tuple[str, ...] = ("pastLines", "futureLines")


def position_message(result: TrackingResult, transcript: str = "") -> dict[str, Any]:
    """Build the WebSocket payload describing a tracking result."""
    display = result.display
    return {
        "type": "position",
        "lineIndex": result.position.line_index,
        "charIndex": result.position.char_index,
        "progress": result.position.progress,
        "isJump": result.position.is_jump,
        "lineCount": result.line_count,
        "previous": [line.text for line in display.previous],
        "readText": display.read_text,
        "unreadText": display.unread_text,
        "following": [line.text for line in display.following],
        "transcript": transcript,
    }


class WebServer:
    """
    Serves the linecue API and manages WebSocket connections.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        initial_settings: DisplaySettings | None = None
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.app: web.Application = web.Application()
        self.websockets: set[web.WebSocketResponse] = set()
        self.runner: web.AppRunner | None = None

        # Current state
        self.script_text: str = ""
        self.script_lines: list[str] = []
        self.script_changed: bool = False
        self.last_position: dict[str, Any] | None = None
        # Navigation requests in arrival order: (kind, line index or None)
        self.navigation_requests: list[tuple[str, int | None]] = []
        # Prompting state control
        self.start_prompting_requested: bool = False
        self.stop_prompting_requested: bool = False
        self.is_prompting: bool = False

        # Merge initial settings with defaults
        self.settings: dict[str, Any] = dict(DEFAULT_CONFIG["display"])
        if initial_settings:
            self.settings.update(initial_settings)

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get('/state', self._handle_get_state)
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_post('/script', self._handle_script_upload)
        self.app.router.add_post('/settings', self._handle_settings)
        self.app.router.add_get('/settings', self._handle_get_settings)
        self.app.router.add_post('/save-config', self._handle_save_config)
        self.app.router.add_get('/audio-devices', self._handle_get_audio_devices)

    def set_script(self, text: str) -> list[str]:
        """Prepare script text and mark it for the application loop."""
        self.script_text = text
        self.script_lines = prepare_script(
            text, render_markdown=bool(self.settings.get("renderMarkdown", False)))
        self.script_changed = True
        self.last_position = None
        logger.info("Script received: %d lines", len(self.script_lines))
        return self.script_lines

    def take_navigation_requests(self) -> list[tuple[str, int | None]]:
        """Return and clear pending navigation requests."""
        requests = self.navigation_requests
        self.navigation_requests = []
        return requests

    def _state(self) -> dict[str, Any]:
        """Current script and position."""
        return {
            "lines": self.script_lines,
            "position": self.last_position,
            "settings": self.settings,
            "isPrompting": self.is_prompting,
        }

    async def _handle_get_state(self, request: web.Request) -> web.Response:
        """Return the current script and position."""
        return web.json_response(self._state())

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.websockets.add(ws)
        logger.info("WebSocket connected. Total: %d", len(self.websockets))

        try:
            await ws.send_json({"type": "init", **self._state()})

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError:
                        logger.warning("Ignoring malformed WebSocket message")
                        continue
                    if isinstance(data, dict):
                        await self._handle_ws_message(ws, data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.error("WebSocket error: %s", ws.exception())
        finally:
            self.websockets.discard(ws)
            logger.info("WebSocket disconnected. Total: %d", len(self.websockets))

        return ws

    async def _handle_ws_message(self, ws: web.WebSocketResponse, data: dict[str, object]) -> None:
        """Apply one client message."""
        msg_type: object | None = data.get("type")

        if msg_type in (NAV_NEXT, NAV_PREVIOUS, NAV_RESET):
            self.navigation_requests.append((str(msg_type), None))
        elif msg_type == NAV_JUMP:
            self._request_jump(data.get("lineIndex", 0))
        elif msg_type == "script":
            await self._load_script(str(data.get("text", "")))
        elif msg_type == "settings":
            await self._update_settings(data.get("settings", {}))
        elif msg_type == "save_config":
            await ws.send_json({
                "type": "config_saved",
                "success": self._save_display_settings()
            })
        elif msg_type in ("start_prompting", "stop_prompting"):
            self._set_prompting(msg_type == "start_prompting")
        elif msg_type:
            logger.warning("Unhandled WebSocket message: %s", msg_type)

    def _request_jump(self, line_index_raw: object) -> None:
        """Queue a jump, ignoring indices that are not integers."""
        try:
            line_index: int = int(line_index_raw)  # type: ignore[call-overload]
        except (TypeError, ValueError, OverflowError):
            logger.warning("Invalid lineIndex in jump_to_line: %r", line_index_raw)
            return
        self.navigation_requests.append((NAV_JUMP, line_index))

    def _set_prompting(self, active: bool) -> None:
        """Record a start or stop request for the application loop."""
        if active:
            self.start_prompting_requested = True
        else:
            self.stop_prompting_requested = True
        self.is_prompting = active
        logger.info("%s prompting requested", "Start" if active else "Stop")

    async def _load_script(self, text: str) -> list[str]:
        """Prepare a script and tell every client about it."""
        lines = self.set_script(text)
        await self.broadcast({"type": "script_loaded", "lines": lines})
        return lines

    async def _update_settings(self, update: object) -> None:
        """Merge display settings and tell every client."""
        if isinstance(update, dict):
            update = dict(update)
            for key in LINE_COUNT_SETTINGS:
                if key not in update:
                    continue
                try:
                    update[key] = max(0, int(update[key]))
                except (TypeError, ValueError, OverflowError):
                    logger.warning("Invalid %s in settings: %r", key, update.pop(key))
            self.settings.update(update)
        await self.broadcast({"type": "settings_updated", "settings": self.settings})

    def _save_display_settings(self) -> bool:
        """Write the current display settings into the config file."""
        config = update_config_display(load_config(), self.settings)  # type: ignore[arg-type]
        return save_config(config)

    @staticmethod
    async def _read_json(request: web.Request) -> object:
        """Request body as JSON, or None if it is not valid JSON."""
        try:
            return await request.json()
        except json.JSONDecodeError:
            return None

    async def _handle_script_upload(self, request: web.Request) -> web.Response:
        """POST /script with {"text": ...}."""
        data = await self._read_json(request)
        if not isinstance(data, dict) or not isinstance(data.get("text"), str):
            return web.json_response(
                {"status": "error", "message": "Expected {\"text\": ...}"}, status=400)

        lines = await self._load_script(data["text"])
        return web.json_response({"status": "ok", "lineCount": len(lines)})

    async def _handle_settings(self, request: web.Request) -> web.Response:
        """POST /settings with a partial settings object."""
        data = await self._read_json(request)
        if not isinstance(data, dict):
            return web.json_response(
                {"status": "error", "message": "Expected an object"}, status=400)
        await self._update_settings(data)
        return web.json_response({"status": "ok", "settings": self.settings})

    async def _handle_get_settings(self, request: web.Request) -> web.Response:
        """GET /settings."""
        return web.json_response(self.settings)

    async def _handle_save_config(self, request: web.Request) -> web.Response:
        """POST /save-config."""
        if self._save_display_settings():
            return web.json_response({"status": "ok", "message": "Settings saved"})
        return web.json_response(
            {"status": "error", "message": "Failed to save config"}, status=500)

    async def _handle_get_audio_devices(self, request: web.Request) -> web.Response:
        """Get list of available audio input devices."""
        try:
            devices = get_input_devices()
        except Exception as e:
            logger.error("Could not query audio devices: %s", e)
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500
            )
        return web.json_response({"status": "ok", "devices": devices})

    async def broadcast(self, message: dict[str, object]) -> None:
        """Send a message to all connected WebSocket clients."""
        if not self.websockets:
            return

        dead: set[web.WebSocketResponse] = set()
        for ws in self.websockets:
            try:
                await ws.send_json(message)
            except (ConnectionError, RuntimeError) as e:
                logger.warning("Error sending to WebSocket: %s", e)
                dead.add(ws)

        self.websockets -= dead

    async def send_position(self, result: TrackingResult, transcript: str = "") -> None:
        """Send position update to all clients."""
        self.last_position = position_message(result, transcript)
        await self.broadcast(self.last_position)

    async def send_model_loading_status(self, status: str, provider: str, model_id: str) -> None:
        """Send model loading status ('loading' or 'ready') to all clients."""
        await self.broadcast({
            "type": "model_loading_status",
            "status": status,
            "provider": provider,
            "modelId": model_id
        })

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site: web.TCPSite = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info("Web server running at http://%s:%d", self.host, self.port)

        # Give event loop a moment to start accepting connections
        await asyncio.sleep(0.1)

    async def stop(self) -> None:
        """Stop the web server."""
        for ws in list(self.websockets):
            with contextlib.suppress(Exception):
                await ws.close()
        self.websockets.clear()

        if self.runner:
            await self.runner.cleanup()
