# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Vosk transcription provider implementation.

Runs fully offline. The Chinese models put a space between every
recognized word; those gaps are removed so transcripts read like the
script they are compared against.
"""

import json
import logging
import re
import shutil
import tempfile
import urllib.request
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from vosk import KaldiRecognizer, Model, SetLogLevel

from ..transcription_provider import ModelInfo, TranscriptionProvider, TranscriptionResult

logger = logging.getLogger(__name__)

SetLogLevel(-1)

MODEL_CACHE_DIR: Path = Path.home() / ".cache" / "linecue" / "models"

# Texts Vosk reports for silence or noise
VOSK_ARTIFACTS: frozenset[str] = frozenset(["the", "嗯"])

# A space with a CJK character on both sides
_CJK_GAP = re.compile(r"(?<=[㐀-鿿])\s+(?=[㐀-鿿])")

ProgressCallback = Callable[[str, int], None]


def join_cjk_words(text: str) -> str:
    """Remove the spaces Vosk puts between Chinese words."""
    return _CJK_GAP.sub("", text.strip())


class VoskProvider(TranscriptionProvider):
    """Vosk speech recognition provider."""

    MODELS: dict[str, dict[str, Any]] = {
        "vosk-cn-small": {
            "dir": "vosk-model-small-cn-0.22",
            "name": "Chinese - Small",
            "language": "zh-CN",
            "size_mb": 42,
        },
        "vosk-cn-large": {
            "dir": "vosk-model-cn-0.22",
            "name": "Chinese - Large",
            "language": "zh-CN",
            "size_mb": 1300,
        },
        "vosk-en-us-small": {
            "dir": "vosk-model-small-en-us-0.15",
            "name": "English US - Small",
            "language": "en-US",
            "size_mb": 40,
        },
    }
    DOWNLOAD_BASE_URL: str = "https://alphacephei.com/vosk/models/"

    model_path: Path
    recognizer: KaldiRecognizer

    def __init__(self, model_id: str, sample_rate: int = 16000) -> None:
        """
        Load a Vosk model.

        Args:
            model_id: Known model id (e.g. "vosk-cn-small") or a path to a
                model directory
            sample_rate: Must match the audio capture rate

        Raises:
            RuntimeError: If the model directory does not exist
        """
        self.model_id = model_id
        self.sample_rate = sample_rate
        self.model_path = self._resolve_model_path(model_id)

        if not self.model_path.is_dir():
            raise RuntimeError(
                f"Vosk model not found at {self.model_path}. "
                f"Download it with: linecue --download-model --model-id {model_id}"
            )

        logger.info("Loading Vosk model %s", self.model_path)
        self.model = Model(str(self.model_path))
        self.reset()

    def _to_result(self, raw: str, key: str, is_partial: bool) -> TranscriptionResult | None:
        """Turn a Vosk JSON result into a TranscriptionResult, dropping noise."""
        text: str = join_cjk_words(json.loads(raw).get(key, ""))
        if not text or text.lower() in VOSK_ARTIFACTS:
            return None
        return TranscriptionResult(text, is_partial=is_partial)

    def process_audio(self, audio_data: bytes) -> TranscriptionResult | None:
        """Feed 16-bit mono PCM and return the current hypothesis, if any."""
        if self.recognizer.AcceptWaveform(audio_data):
            # End of an utterance
            return self._to_result(self.recognizer.Result(), "text", is_partial=False)
        return self._to_result(self.recognizer.PartialResult(), "partial", is_partial=True)

    def reset(self) -> None:
        """Start a fresh recognizer on the loaded model."""
        self.recognizer = KaldiRecognizer(self.model, self.sample_rate)

    def get_final(self) -> TranscriptionResult | None:
        """Flush whatever the recognizer still holds."""
        return self._to_result(self.recognizer.FinalResult(), "text", is_partial=False)

    @staticmethod
    def get_available_models() -> list[ModelInfo]:
        """Describe the built-in Vosk models."""
        return [
            ModelInfo(
                id=model_id,
                name=info["name"],
                provider="vosk",
                language=info["language"],
                size_mb=info["size_mb"],
                description=f"Vosk {info['dir']}",
            )
            for model_id, info in VoskProvider.MODELS.items()
        ]

    @staticmethod
    def _model_info(model_id: str) -> dict[str, Any]:
        info: dict[str, Any] | None = VoskProvider.MODELS.get(model_id)
        if info is None:
            raise ValueError(
                f"Unknown Vosk model: {model_id}. "
                f"Choose from: {', '.join(VoskProvider.MODELS)}"
            )
        return info

    @staticmethod
    def is_downloaded(model_id: str, target_dir: str | None = None) -> bool:
        """Check whether a known model is present in the cache."""
        info: dict[str, Any] | None = VoskProvider.MODELS.get(model_id)
        if info is None:
            return False
        base: Path = Path(target_dir) if target_dir else MODEL_CACHE_DIR
        return (base / info["dir"]).is_dir()

    @staticmethod
    def download_model(
        model_id: str,
        target_dir: str | None = None,
        progress_callback: ProgressCallback | None = None
    ) -> str:
        """
        Download and unpack a Vosk model unless it is already cached.

        Args:
            model_id: Model identifier (e.g., "vosk-cn-small")
            target_dir: Directory to unpack into, or None for the cache
            progress_callback: Optional callback(stage, percent)

        Returns:
            Path to the model directory

        Raises:
            ValueError: If model_id is not a known model
        """
        info: dict[str, Any] = VoskProvider._model_info(model_id)
        base: Path = Path(target_dir) if target_dir else MODEL_CACHE_DIR
        model_path: Path = base / info["dir"]

        def report(stage: str, percent: int) -> None:
            if progress_callback:
                progress_callback(stage, percent)

        if model_path.is_dir():
            logger.info("Model %s already cached at %s", model_id, model_path)
            report("complete", 100)
            return str(model_path)

        base.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory() as tmpdir:
            archive: Path = Path(tmpdir) / f"{info['dir']}.zip"
            _fetch(VoskProvider.DOWNLOAD_BASE_URL + archive.name, archive, report)
            report("extracting", 0)
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(tmpdir)
            # Move into place only once fully unpacked
            shutil.move(str(Path(tmpdir) / info["dir"]), str(model_path))

        report("complete", 100)
        logger.info("Model %s installed to %s", model_id, model_path)
        return str(model_path)

    def _resolve_model_path(self, model_id: str) -> Path:
        """Map a known model id to the cache, or treat it as a path."""
        info: dict[str, Any] | None = self.MODELS.get(model_id)
        if info is None:
            return Path(model_id).expanduser()
        return MODEL_CACHE_DIR / info["dir"]


def _fetch(url: str, destination: Path, report: ProgressCallback) -> None:
    """Download url to destination, reporting percentage progress."""
    logger.info("Downloading %s", url)
    report("downloading", 0)

    def hook(block_count: int, block_size: int, total_size: int) -> None:
        if total_size > 0:
            report("downloading", min(100, block_count * block_size * 100 // total_size))

    urllib.request.urlretrieve(url, str(destination), hook)
