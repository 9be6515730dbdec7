# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Builds full transcript snapshots from streaming recognizer output.

Streaming recognizers report a partial hypothesis for the utterance in
progress and, once it ends, a final result; the next utterance starts
from scratch. The tracker wants everything recognized so far on every
update, so finals are appended and the latest partial is kept on top.
"""

from .transcription_provider import TranscriptionResult


class TranscriptAccumulator:
    """
    Joins final utterances and the current partial into one snapshot.

    Usage:
        accumulator = TranscriptAccumulator()
        snapshot = accumulator.add(result)
        tracker.update(snapshot)
    """

    separator: str
    max_chars: int | None
    finals: list[str]
    partial: str

    def __init__(self, separator: str = " ", max_chars: int | None = 2000) -> None:
        """
        Args:
            separator: Text placed between utterances
            max_chars: Keep only this many trailing characters of the
                snapshot (None keeps everything). The tracker only looks at
                a short tail, so old text is not needed.
        """
        self.separator = separator
        self.max_chars = max_chars
        self.finals = []
        self.partial = ""

    def add(self, result: TranscriptionResult) -> str:
        """Apply a recognizer result and return the new snapshot."""
        text: str = result.text.strip()
        if result.is_partial:
            # A revised partial replaces the previous hypothesis
            self.partial = text
        else:
            if text:
                self.finals.append(text)
            self.partial = ""
            self._trim()
        return self.snapshot

    def _trim(self) -> None:
        """Drop the oldest finals once they are no longer needed."""
        if self.max_chars is None:
            return
        total: int = sum(len(f) + len(self.separator) for f in self.finals)
        while len(self.finals) > 1 and total - len(self.finals[0]) > self.max_chars:
            total -= len(self.finals[0]) + len(self.separator)
            self.finals.pop(0)

    @property
    def snapshot(self) -> str:
        """Everything recognized so far."""
        parts: list[str] = self.finals + ([self.partial] if self.partial else [])
        text: str = self.separator.join(parts)
        if self.max_chars is not None and len(text) > self.max_chars:
            text = text[-self.max_chars:]
        return text

    def reset(self) -> None:
        """Forget all recognized text (e.g. when prompting restarts)."""
        self.finals = []
        self.partial = ""
