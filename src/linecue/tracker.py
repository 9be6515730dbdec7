"""
Line tracking module that matches recognized speech to script lines.

Each update re-tokenizes the full transcript snapshot and scans two
trailing windows of it:
1. Line jump: the recent tokens are searched for the prefix of one of the
   next few lines. A hit moves to that line.
2. In-line progress: the longer tail is matched against the current line
   only, within a small lookahead window per token.

Line and in-line positions only move forward on their own. Manual
navigation and reset are the only ways back.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .fuzzy import DEFAULT_FUZZY_THRESHOLD, fuzzy_equal
from .phonetic import tokenize
from .script_parser import ScriptLine, build_lines

logger = logging.getLogger(__name__)

# Lines whose prefix is shorter than this are never jump targets
MIN_PREFIX_LENGTH: int = 2


@dataclass
class TrackerPosition:
    """Represents the current position in the script."""
    line_index: int  # Index of current line
    char_index: int  # Index of the last token read in the current line
    progress: float = 0.0  # line_index / max(line_count - 1, 1)
    # Whether this update moved to a new line via prefix detection
    is_jump: bool = False


@dataclass
class DisplayLines:
    """Lines around the current position, split for highlighting."""
    previous: list[ScriptLine] = field(default_factory=list)
    current: ScriptLine | None = None
    following: list[ScriptLine] = field(default_factory=list)
    read_text: str = ""  # Part of the current line already spoken
    unread_text: str = ""  # Rest of the current line


class LineTracker:
    """
    Tracks the line being read and the progress within it.

    Not thread-safe: callers must serialize calls to configure(), reset(),
    update() and the navigation methods (see ThreadedTracker).
    """

    tail_size: int
    recent_size: int
    prefix_min_match: int
    lookahead: int
    in_line_window: int
    min_match_count: int
    fuzzy_threshold: float

    lines: list[ScriptLine]
    current_line_index: int
    current_char_in_line: int
    last_update_was_jump: bool
    last_transcription: str

    def __init__(
        self,
        lines: Sequence[str] | None = None,
        tail_size: int = 25,
        recent_size: int = 12,
        prefix_min_match: int = 3,
        lookahead: int = 3,
        in_line_window: int = 3,
        min_match_count: int = 2,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    ) -> None:
        """
        Initialize the line tracker.

        Args:
            lines: Optional script lines to configure immediately
            tail_size: Number of trailing transcript tokens matched in-line
            recent_size: Number of trailing tokens searched for line prefixes
            prefix_min_match: Length of the line prefix used as jump evidence
            lookahead: How many lines ahead of the current one may be jumped to
            in_line_window: Line positions searched ahead for each tail token
            min_match_count: Matches needed before in-line progress is committed
            fuzzy_threshold: Maximum normalized edit distance for token equality
        """
        self.tail_size = tail_size
        self.recent_size = recent_size
        self.prefix_min_match = prefix_min_match
        self.lookahead = lookahead
        self.in_line_window = in_line_window
        self.min_match_count = min_match_count
        self.fuzzy_threshold = fuzzy_threshold

        self.lines = []
        self.current_line_index = 0
        self.current_char_in_line = 0
        self.last_update_was_jump = False
        self.last_transcription = ""

        if lines is not None:
            self.configure(lines)

    def configure(self, lines: Sequence[str]) -> None:
        """Replace the script and go back to the first line."""
        self.lines = build_lines(lines)
        self.reset()
        logger.debug("Configured %d lines", len(self.lines))

    def reset(self) -> None:
        """Reset tracking to the beginning of the script."""
        self.current_line_index = 0
        self.current_char_in_line = 0
        self.last_update_was_jump = False
        self.last_transcription = ""

    def update(self, transcription: str) -> TrackerPosition:
        """
        Update position from a full transcript snapshot.

        The snapshot is everything recognized so far, not a delta; it may
        revise earlier text.

        Args:
            transcription: The transcribed text

        Returns:
            Updated TrackerPosition
        """
        self.last_update_was_jump = False
        # A repeated snapshot must not consume the same tail twice
        if transcription == self.last_transcription:
            return self.current_position
        self.last_transcription = transcription

        if not self.lines or not transcription:
            return self.current_position

        tokens: list[str] = tokenize(transcription)
        if not tokens:
            return self.current_position

        tail: list[str] = tokens[-self.tail_size:]

        next_line: int | None = self.detect_jump(tail)
        if next_line is not None:
            logger.debug(
                "Line jump: %d -> %d", self.current_line_index, next_line)
            self.current_line_index = next_line
            self.current_char_in_line = 0
            self.last_update_was_jump = True

        # The same tail is used even right after a jump
        progress: int = self.match_line_progress(
            tail, self.current_line_index, self.current_char_in_line)
        if progress > self.current_char_in_line:
            logger.debug(
                "Line %d: char %d -> %d", self.current_line_index,
                self.current_char_in_line, progress)
            self.current_char_in_line = progress

        return self.current_position

    def jump_to_line(self, line_index: int) -> None:
        """Jump to the start of a line, clamped to the script."""
        if not self.lines:
            return
        self.current_line_index = max(0, min(line_index, len(self.lines) - 1))
        self.current_char_in_line = 0
        self.last_update_was_jump = False
        self.last_transcription = ""

    def advance_line(self) -> None:
        """Move to the start of the next line."""
        self.jump_to_line(self.current_line_index + 1)

    def retreat_line(self) -> None:
        """Move to the start of the previous line."""
        self.jump_to_line(self.current_line_index - 1)

    def detect_jump(self, tail: Sequence[str]) -> int | None:
        """
        Find the nearest upcoming line whose prefix was just spoken.

        Checks lines nearest-first so a line is never skipped when there is
        evidence for it.

        Args:
            tail: Trailing transcript tokens

        Returns:
            Index of the line to jump to, or None
        """
        max_line: int = min(
            self.current_line_index + self.lookahead, len(self.lines) - 1)
        if self.current_line_index >= max_line:
            return None

        recent: Sequence[str] = tail[-self.recent_size:]

        for line_idx in range(self.current_line_index + 1, max_line + 1):
            line_tokens: list[str] = self.lines[line_idx].tokens
            prefix_len: int = min(self.prefix_min_match, len(line_tokens))
            if prefix_len < MIN_PREFIX_LENGTH:
                continue

            if self._contains_sequential(recent, line_tokens[:prefix_len]):
                return line_idx

        return None

    def _contains_sequential(self, source: Sequence[str], pattern: Sequence[str]) -> bool:
        """Check if `pattern` occurs in order (with gaps) in `source`.

        From each start offset at most len(pattern) * 2 source tokens are
        scanned, so scattered coincidental matches are rejected.
        """
        spread: int = len(pattern) * 2

        for start in range(len(source)):
            pat_idx: int = 0
            src_idx: int = start
            while (pat_idx < len(pattern) and src_idx < len(source)
                   and src_idx - start < spread):
                if fuzzy_equal(source[src_idx], pattern[pat_idx], self.fuzzy_threshold):
                    pat_idx += 1
                src_idx += 1

            if pat_idx >= len(pattern):
                return True

        return False

    def match_line_progress(self, tail: Sequence[str], line_index: int, from_char: int) -> int:
        """
        Match tail tokens in order against a single line.

        Each token may only match within `in_line_window` positions of the
        cursor, so a misrecognized token moves the cursor at most one window.
        At least `min_match_count` matches are needed to move at all.

        Args:
            tail: Trailing transcript tokens
            line_index: Line to match against
            from_char: Line position to start from

        Returns:
            Index of the last matched token, or `from_char` if there were
            too few matches
        """
        if line_index < 0 or line_index >= len(self.lines):
            return from_char
        line_tokens: list[str] = self.lines[line_index].tokens
        if not line_tokens or from_char >= len(line_tokens):
            return from_char

        line_pos: int = from_char
        best: int = from_char
        match_count: int = 0

        for token in tail:
            if line_pos >= len(line_tokens):
                break

            window_end: int = min(line_pos + self.in_line_window, len(line_tokens))
            for check in range(line_pos, window_end):
                if fuzzy_equal(token, line_tokens[check], self.fuzzy_threshold):
                    line_pos = check + 1
                    best = check
                    match_count += 1
                    break

        return best if match_count >= self.min_match_count else from_char

    def get_display_lines(self, past_lines: int = 1, future_lines: int = 1) -> DisplayLines:
        """
        Get lines to display around the current position.

        Args:
            past_lines: Number of lines before current to show
            future_lines: Number of lines after current to show

        Returns:
            DisplayLines with the current line split into read and unread text
        """
        if not self.lines:
            return DisplayLines()

        current: ScriptLine = self.lines[self.current_line_index]
        start_line: int = max(0, self.current_line_index - past_lines)
        end_line: int = min(len(self.lines), self.current_line_index + future_lines + 1)
        read_text, unread_text = current.split_at_token(self.current_char_in_line)

        return DisplayLines(
            previous=self.lines[start_line:self.current_line_index],
            current=current,
            following=self.lines[self.current_line_index + 1:end_line],
            read_text=read_text,
            unread_text=unread_text
        )

    @property
    def line_count(self) -> int:
        """Number of lines in the script."""
        return len(self.lines)

    @property
    def progress(self) -> float:
        """Get overall progress through the script (0.0 to 1.0)."""
        if not self.lines:
            return 0.0
        return self.current_line_index / max(len(self.lines) - 1, 1)

    @property
    def current_position(self) -> TrackerPosition:
        """Get the current position without updating."""
        return TrackerPosition(
            line_index=self.current_line_index,
            char_index=self.current_char_in_line,
            progress=self.progress,
            is_jump=self.last_update_was_jump
        )
