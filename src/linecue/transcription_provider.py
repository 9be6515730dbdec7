# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Base interface for speech transcription providers.

Providers turn raw microphone audio into partial and final text results.
Their output is combined into full snapshots by TranscriptAccumulator
before it reaches the line tracker.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


@dataclass
class TranscriptionResult:
    """Represents a transcription result from any provider."""

    text: str
    is_partial: bool
    confidence: float = 1.0

    def __repr__(self) -> str:
        status: str = "partial" if self.is_partial else "final"
        return f"TranscriptionResult({status}: '{self.text}')"


@dataclass
class ModelInfo:
    """Information about an available transcription model."""

    id: str  # Unique identifier (e.g., "vosk-cn-small")
    name: str  # Display name (e.g., "Chinese - Small")
    provider: str  # Provider name
    language: str  # BCP 47 language tag (e.g., "zh-CN")
    size_mb: int | None = None
    description: str | None = None


class TranscriptionProvider(ABC):
    """
    A streaming recognizer.

    process_audio() is called once per audio chunk. Partial results revise
    the utterance in progress; a final result closes it.
    """

    model_id: str
    sample_rate: int

    @abstractmethod
    def __init__(self, model_id: str, sample_rate: int = 16000) -> None:
        """Load the model named by model_id (or found at that path)."""

    @abstractmethod
    def process_audio(self, audio_data: bytes) -> TranscriptionResult | None:
        """Feed one chunk of 16-bit mono PCM; None when there is nothing new."""

    @abstractmethod
    def reset(self) -> None:
        """Forget the utterance in progress (e.g. when prompting restarts)."""

    @abstractmethod
    def get_final(self) -> TranscriptionResult | None:
        """Close the utterance in progress and return it, if any."""

    @staticmethod
    @abstractmethod
    def get_available_models() -> list[ModelInfo]:
        """Models this provider can download."""

    @staticmethod
    @abstractmethod
    def is_downloaded(model_id: str, target_dir: str | None = None) -> bool:
        """Whether the model is already unpacked locally."""

    @staticmethod
    @abstractmethod
    def download_model(model_id: str, target_dir: str | None = None,
                       progress_callback: Callable[[str, int], None] | None = None) -> str:
        """
        Fetch a model unless it is already present.

        Args:
            model_id: One of get_available_models()
            target_dir: Directory to unpack into, or None for the cache
            progress_callback: Optional callback(stage, percent)

        Returns:
            Path to the model directory
        """
