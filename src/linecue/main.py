"""
Main linecue application.
Orchestrates audio capture, transcription, line tracking, and the web API.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
from pathlib import Path

from .audio import AudioCapture, list_devices
from .config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    Config,
    DisplaySettings,
    TrackingSettings,
    TranscriptionConfig,
    get_config_path,
    get_display_settings,
    get_tracking_settings,
    get_transcription_settings,
    load_config,
    save_config,
    tracker_kwargs,
)
from .providers import (
    PROVIDER_REGISTRY,
    create_provider,
    download_model_with_progress,
    get_all_available_models,
    is_model_downloaded,
)
from .server import NAV_JUMP, NAV_NEXT, NAV_PREVIOUS, NAV_RESET, WebServer
from .threaded_tracker import ThreadedTracker, TrackingResult
from .transcript import TranscriptAccumulator
from .transcription_provider import TranscriptionProvider

logger = logging.getLogger(__name__)


class LinecueApp:
    """
    Main linecue application that coordinates all components.

    All tracker calls go through one ThreadedTracker, so recognizer
    snapshots and UI navigation are applied in arrival order.
    """

    def __init__(
        self,
        transcription_config: TranscriptionConfig | None = None,
        host: str = "127.0.0.1",
        port: int = 8000,
        audio_device: int | None = None,
        chunk_ms: int = 100,
        display_settings: DisplaySettings | None = None,
        tracking_settings: TrackingSettings | None = None,
        script_text: str | None = None
    ) -> None:
        self.transcription_config: TranscriptionConfig = (
            transcription_config or DEFAULT_CONFIG["transcription"]
        )
        self.host: str = host
        self.port: int = port
        self.audio_device: int | None = audio_device
        self.chunk_ms: int = chunk_ms
        self.display_settings: DisplaySettings = (
            display_settings or DEFAULT_CONFIG["display"]
        )
        self.tracking_settings: TrackingSettings = (
            tracking_settings or DEFAULT_CONFIG["tracking"]
        )
        self.script_text: str | None = script_text

        self.audio: AudioCapture | None = None
        self.provider: TranscriptionProvider | None = None
        self.tracker: ThreadedTracker | None = None
        self.server: WebServer | None = None
        self.transcript: TranscriptAccumulator = TranscriptAccumulator()

        self.running: bool = False
        self._last_sent: tuple[int, int] | None = None

    async def _initialize_audio_and_provider(self) -> None:
        """Initialize audio capture and recognizer (called when prompting starts)."""
        assert self.server is not None, "Server must be initialized"

        if self.audio is None:
            self.audio = AudioCapture(
                chunk_duration_ms=self.chunk_ms,
                device=self.audio_device
            )
            self.audio.start()

        if self.provider is None:
            provider = self.transcription_config['provider']
            model_id = (self.transcription_config.get('model_path')
                        or self.transcription_config['model_id'])
            print(f"Loading transcription model: {provider} / {model_id}")
            await self.server.send_model_loading_status("loading", provider, model_id)

            # Model loading blocks for seconds
            loop = asyncio.get_running_loop()
            self.provider = await loop.run_in_executor(
                None, lambda: create_provider(provider, model_id)
            )

            await self.server.send_model_loading_status("ready", provider, model_id)
            print(f"Transcription model loaded: {provider} / {model_id}")

    def _cleanup_audio_and_provider(self) -> None:
        """Stop audio capture and unload the recognizer."""
        if self.audio:
            self.audio.stop()
            self.audio = None
        self.provider = None

    async def start(self) -> None:
        """Start the linecue application."""
        self.server = WebServer(
            host=self.host,
            port=self.port,
            initial_settings=self.display_settings
        )
        self.tracker = ThreadedTracker(
            past_lines=self.display_settings.get("pastLines", 1),
            future_lines=self.display_settings.get("futureLines", 1),
            **tracker_kwargs(self.tracking_settings)
        )
        if self.script_text:
            self.server.set_script(self.script_text)

        await self.server.start()
        self.running = True

        print("\n✓ linecue ready!")
        print(f"  API and WebSocket at http://{self.host}:{self.port}")
        print("  Press Ctrl+C to stop\n")

        process_task = asyncio.create_task(self._process_loop())
        try:
            await process_task
        except asyncio.CancelledError:
            logger.debug("Process task cancelled")

    def _apply_server_requests(self) -> None:
        """Forward script changes and navigation gestures to the tracker."""
        assert self.server is not None and self.tracker is not None

        if self.server.script_changed:
            self.server.script_changed = False
            self.tracker.configure(self.server.script_lines)
            self.transcript.reset()
            self._last_sent = None
            print(f"Script loaded: {len(self.server.script_lines)} lines")

        try:
            past_lines = max(0, int(self.server.settings.get("pastLines", 1)))
            future_lines = max(0, int(self.server.settings.get("futureLines", 1)))
        except (TypeError, ValueError, OverflowError):
            logger.warning("Ignoring invalid display line counts: %r, %r",
                           self.server.settings.get("pastLines"),
                           self.server.settings.get("futureLines"))
        else:
            if (past_lines, future_lines) != (self.tracker.past_lines, self.tracker.future_lines):
                self.tracker.update_display_settings(past_lines, future_lines)

        for kind, line_index in self.server.take_navigation_requests():
            if kind == NAV_JUMP and line_index is not None:
                self.tracker.jump_to_line(line_index)
            elif kind == NAV_NEXT:
                self.tracker.advance_line()
            elif kind == NAV_PREVIOUS:
                self.tracker.retreat_line()
            elif kind == NAV_RESET:
                self.tracker.reset()
            self._last_sent = None

    async def _process_audio(self) -> None:
        """Recognize one audio chunk and submit the resulting snapshot."""
        assert self.tracker is not None
        if not (self.audio and self.provider):
            return

        loop = asyncio.get_running_loop()
        audio_chunk: bytes | None = await loop.run_in_executor(
            None, self.audio.get_chunk, 0.05
        )
        if not audio_chunk:
            return

        result = await loop.run_in_executor(
            None, self.provider.process_audio, audio_chunk
        )
        if result and result.text:
            snapshot: str = self.transcript.add(result)
            self.tracker.submit_transcription(snapshot, force=not result.is_partial)

    async def _send_results(self) -> None:
        """Broadcast tracker results whose position changed."""
        assert self.server is not None and self.tracker is not None
        result: TrackingResult | None = self.tracker.get_latest_result()
        while result is not None:
            key = (result.position.line_index, result.position.char_index)
            if key != self._last_sent or result.position.is_jump:
                await self.server.send_position(result, self.transcript.partial)
                self._last_sent = key
            result = self.tracker.get_latest_result()

    async def _process_loop(self) -> None:
        """Main loop that processes audio and updates position."""
        assert self.server is not None and self.tracker is not None

        while self.running:
            if self.server.start_prompting_requested:
                self.server.start_prompting_requested = False
                try:
                    await self._initialize_audio_and_provider()
                except (RuntimeError, ValueError) as e:
                    logger.error("Could not start prompting: %s", e)
                    self.server.is_prompting = False
                    self._cleanup_audio_and_provider()
                else:
                    # Every recording starts from the top
                    self.tracker.reset()
                    self.transcript.reset()
                    if self.provider:
                        self.provider.reset()
                    if self.audio:
                        self.audio.clear_queue()
                    self._last_sent = None
                    print("Prompting started")

            if self.server.stop_prompting_requested:
                self.server.stop_prompting_requested = False
                if self.provider:
                    final = self.provider.get_final()
                    if final and final.text:
                        self.tracker.submit_transcription(
                            self.transcript.add(final), force=True)
                self._cleanup_audio_and_provider()
                print("Prompting stopped")

            self._apply_server_requests()
            await self._process_audio()
            await self._send_results()

            # Small sleep to prevent CPU spinning
            await asyncio.sleep(0.01)

    async def stop(self) -> None:
        """Stop the linecue application."""
        print("\nStopping linecue...")
        self.running = False

        self._cleanup_audio_and_provider()

        if self.tracker:
            self.tracker.shutdown()

        if self.server:
            await self.server.stop()

        print("linecue stopped.")


def build_parser(config: Config) -> argparse.ArgumentParser:
    """CLI options; defaults come from the config file."""
    transcription = get_transcription_settings(config)
    parser = argparse.ArgumentParser(
        description="linecue - teleprompter that follows your voice line by line"
    )

    parser.add_argument("--script", "-s", type=Path, default=None,
                        help="Script file to load at startup (one prompter line per line)")

    model = parser.add_argument_group("speech recognition")
    model.add_argument("--provider", default=transcription.get("provider", "vosk"),
                       choices=sorted(PROVIDER_REGISTRY),
                       help="Transcription provider (default: %(default)s)")
    model.add_argument("--model-id", default=transcription.get("model_id"),
                       help="Model id, e.g. vosk-cn-small (default: %(default)s)")
    model.add_argument("--model-path", default=transcription.get("model_path"),
                       help="Model directory, overrides --model-id")
    model.add_argument("--list-models", action="store_true",
                       help="Print the downloadable models and exit")
    model.add_argument("--download-model", action="store_true",
                       help="Download --model-id into the model cache and exit")

    audio = parser.add_argument_group("audio")
    audio.add_argument("--device", "-d", type=int, default=config.get("audio_device"),
                       help="Input device index (see --list-devices)")
    audio.add_argument("--chunk-ms", type=int, default=config.get("chunk_ms", 100),
                       help="Audio chunk length in ms (default: %(default)s)")
    audio.add_argument("--list-devices", action="store_true",
                       help="Print the audio input devices and exit")

    server = parser.add_argument_group("server")
    server.add_argument("--host", default=config.get("host", "127.0.0.1"),
                        help="Bind address (default: %(default)s)")
    server.add_argument("--port", "-p", type=int, default=config.get("port", 8000),
                        help="Port (default: %(default)s)")

    parser.add_argument("--save-config", action="store_true",
                        help=f"Write these options to {CONFIG_FILENAME} and exit")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log tracking decisions")
    return parser


def _print_models() -> None:
    print("\nAvailable transcription models:")
    print("-" * 60)
    for model in sorted(get_all_available_models(), key=lambda m: (m.provider, m.id)):
        marker = "*" if is_model_downloaded(model.provider, model.id) else " "
        print(f" {marker} {model.id:<20} {model.name} ({model.language}, {model.size_mb}MB)")
    print("\n  * downloaded")


def _save_cli_config(args: argparse.Namespace, config: Config) -> None:
    config["transcription"] = {
        "provider": args.provider,
        "model_id": args.model_id,
        "model_path": args.model_path,
    }
    config.update(host=args.host, port=args.port,
                  audio_device=args.device, chunk_ms=args.chunk_ms)
    if save_config(config):
        print(f"Configuration saved to {get_config_path()}")


def main() -> None:
    """Main entry point."""
    config: Config = load_config()
    parser = build_parser(config)
    args: argparse.Namespace = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    if args.list_devices:
        list_devices()
        return

    if args.list_models:
        _print_models()
        return

    if args.download_model:
        print(f"Downloading model: {args.model_id}")
        try:
            path = download_model_with_progress(
                args.provider, args.model_id,
                lambda stage, percent: print(f"\r  {stage}: {percent}%", end="", flush=True))
        except ValueError as e:
            parser.error(str(e))
        print(f"\nModel ready at {path}")
        return

    if args.save_config:
        _save_cli_config(args, config)
        return

    script_text: str | None = None
    if args.script:
        try:
            script_text = args.script.read_text(encoding="utf-8")
        except OSError as e:
            parser.error(f"Could not read script {args.script}: {e}")

    app: LinecueApp = LinecueApp(
        transcription_config={
            "provider": args.provider,
            "model_id": args.model_id,
            "model_path": args.model_path,
        },
        host=args.host,
        port=args.port,
        audio_device=args.device,
        chunk_ms=args.chunk_ms,
        display_settings=get_display_settings(config),
        tracking_settings=get_tracking_settings(config),
        script_text=script_text
    )

    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def request_stop(sig: int, frame: object) -> None:
        """Let the processing loop finish on SIGINT/SIGTERM."""
        app.running = False

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        app.running = False
    finally:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
        leftover = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in leftover:
            task.cancel()
        if leftover:
            loop.run_until_complete(asyncio.gather(*leftover, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
