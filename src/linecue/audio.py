# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Microphone capture using sounddevice.
Delivers 16-bit mono PCM chunks to the transcription provider.
"""

import logging
import queue
from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt
import sounddevice as sd

logger = logging.getLogger(__name__)


class AudioCapture:
    """Captures audio from the microphone in small chunks for streaming transcription."""

    sample_rate: int
    chunk_duration_ms: int
    chunk_size: int
    device: int | None
    audio_queue: queue.Queue[bytes]
    stream: sd.RawInputStream | None
    running: bool

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_duration_ms: int = 100,
        device: int | None = None
    ) -> None:
        """
        Args:
            sample_rate: Sample rate in Hz (16000 matches the Vosk models)
            chunk_duration_ms: Duration of each audio chunk in milliseconds
            device: Audio device index, or None for default
        """
        self.sample_rate = sample_rate
        self.chunk_duration_ms = chunk_duration_ms
        self.chunk_size = int(sample_rate * chunk_duration_ms / 1000)
        self.device = device

        self.audio_queue = queue.Queue()
        self.stream = None
        self.running = False

    def _audio_callback(
        self,
        indata: npt.NDArray[np.int16],
        frames: int,
        time: Any,
        status: sd.CallbackFlags
    ) -> None:
        """Called by sounddevice for each captured block."""
        if status:
            logger.warning("Audio status: %s", status)
        self.audio_queue.put(bytes(indata))

    def start(self) -> None:
        """Start capturing audio from the microphone."""
        if self.running:
            return

        self.stream = sd.RawInputStream(
            samplerate=self.sample_rate,
            blocksize=self.chunk_size,
            device=self.device,
            dtype=np.int16,
            channels=1,
            callback=self._audio_callback
        )
        self.stream.start()
        self.running = True
        logger.info("Audio capture started (device=%s, %d ms chunks)",
                    self.device, self.chunk_duration_ms)

    def stop(self) -> None:
        """Close the input stream; chunks already queued stay readable."""
        self.running = False
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None
            logger.info("Audio capture stopped")

    def get_chunk(self, timeout: float = 0.5) -> bytes | None:
        """
        Next PCM chunk for the transcription provider.

        The process loop polls with a short timeout so it can still react
        to script and navigation requests while the speaker is silent.

        Returns:
            Raw int16 samples, or None if nothing arrived within `timeout`
        """
        try:
            return self.audio_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def clear_queue(self) -> None:
        """Discard pending audio chunks (e.g. when prompting restarts)."""
        while True:
            try:
                self.audio_queue.get_nowait()
            except queue.Empty:
                break


def get_input_devices() -> list[dict[str, Any]]:
    """Return index, name and channel count of every input device."""
    devices: Sequence[Any] = sd.query_devices()
    inputs: list[dict[str, Any]] = []
    for i, device in enumerate(devices):
        dev: dict[str, Any] = dict(device)
        if dev.get('max_input_channels', 0) > 0:
            inputs.append({
                "index": i,
                "name": dev.get('name', 'Unknown'),
                "channels": dev.get('max_input_channels', 0),
            })
    return inputs


def list_devices() -> list[dict[str, Any]]:
    """Print available audio input devices."""
    print("Available audio input devices:")
    inputs = get_input_devices()
    for dev in inputs:
        print(f"  [{dev['index']}] {dev['name']} (inputs: {dev['channels']})")
    return inputs
