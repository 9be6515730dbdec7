# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a transcript through the line tracker.

Takes a script file and a transcript file (one recognized utterance per
line), rebuilds the full-text snapshots the recognizer would have
delivered, and logs every line jump and in-line advance.
"""

import argparse
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .script_parser import prepare_script
from .tracker import LineTracker
from .transcript import TranscriptAccumulator
from .transcription_provider import TranscriptionResult

EventType = Literal["LINE_JUMP", "advance", "no_change"]


@dataclass
class TrackingEvent:
    """A single tracking event during transcript replay."""
    transcript_line: int
    snapshot_tail: str
    line_index: int
    char_index: int
    event_type: EventType


def load_transcript(path: Path) -> list[str]:
    """Load transcript file and extract transcript lines.

    Filters out metadata lines (starting with '===') and empty lines.
    """
    lines: list[str] = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            stripped_line: str = line.strip()
            if stripped_line.startswith('===') or not stripped_line:
                continue
            lines.append(stripped_line)
    return lines


def load_script(path: Path) -> str:
    """Load script file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def _iter_snapshots(transcript_lines: list[str], char_by_char: bool):
    """Yield (transcript_line_number, snapshot) as a recognizer would deliver them."""
    accumulator = TranscriptAccumulator(max_chars=None)
    for line_num, line in enumerate(transcript_lines, start=1):
        if char_by_char:
            for end in range(1, len(line)):
                if line[end - 1].isspace():
                    continue
                yield line_num, accumulator.add(
                    TranscriptionResult(line[:end], is_partial=True))
        yield line_num, accumulator.add(TranscriptionResult(line, is_partial=False))


def replay_transcript(
    transcript_lines: list[str],
    script_text: str,
    output: TextIO,
    verbose: bool = False,
    char_by_char: bool = False
) -> list[TrackingEvent]:
    """Replay transcript through the tracker and log events.

    Args:
        transcript_lines: Recognized utterances, in order
        script_text: The script content
        output: File handle to write log output
        verbose: If True, log every snapshot. If False, only log changes.
        char_by_char: Simulate partial results growing one character at a time

    Returns:
        List of all tracking events
    """
    tracker: LineTracker = LineTracker(prepare_script(script_text))
    events: list[TrackingEvent] = []

    output.write("=" * 80 + "\n")
    output.write("TRANSCRIPT DEBUG LOG\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Script lines: {tracker.line_count}\n")
    output.write(f"Transcript lines: {len(transcript_lines)}\n")
    output.write("=" * 80 + "\n\n")

    output.write("SCRIPT LINES:\n")
    output.write("-" * 40 + "\n")
    for i, line in enumerate(tracker.lines):
        output.write(f"  [{i:3d}] {line.text}\n")
    output.write("\n" + "=" * 80 + "\n\n")

    output.write("TRACKING LOG:\n")
    output.write("-" * 40 + "\n")

    for line_num, snapshot in _iter_snapshots(transcript_lines, char_by_char):
        before = tracker.current_position
        after = tracker.update(snapshot)
        tail: str = snapshot[-20:]

        event_type: EventType
        if after.is_jump:
            event_type = "LINE_JUMP"
        elif after.char_index > before.char_index:
            event_type = "advance"
        else:
            event_type = "no_change"

        if event_type == "LINE_JUMP":
            output.write(
                f"  *** LINE JUMP at \"...{tail}\" ***\n"
                f"      Line: {before.line_index} -> {after.line_index} "
                f"\"{tracker.lines[after.line_index].text}\"\n"
            )
        elif event_type == "advance" or verbose:
            display = tracker.get_display_lines(past_lines=0, future_lines=0)
            output.write(
                f"  [{after.line_index:3d}:{after.char_index:3d}] \"...{tail}\" "
                f"read=\"{display.read_text}\" ({event_type})\n"
            )

        events.append(TrackingEvent(
            transcript_line=line_num,
            snapshot_tail=tail,
            line_index=after.line_index,
            char_index=after.char_index,
            event_type=event_type
        ))

    jumps: list[TrackingEvent] = [e for e in events if e.event_type == "LINE_JUMP"]
    advances: list[TrackingEvent] = [e for e in events if e.event_type == "advance"]

    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")
    output.write(f"Snapshots processed: {len(events)}\n")
    output.write(
        f"Final position: line {tracker.current_line_index} / {tracker.line_count}, "
        f"char {tracker.current_char_in_line}\n")
    output.write(f"Advances: {len(advances)}\n")
    output.write(f"Line jumps: {len(jumps)}\n")

    if jumps:
        output.write("\nLine jump events:\n")
        for e in jumps:
            output.write(
                f"  Transcript line {e.transcript_line}: -> line {e.line_index}\n")

    return events


def main() -> None:
    """CLI entry point for the replay tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Replay a recorded transcript through the line tracker"
    )

    parser.add_argument(
        "script",
        type=Path,
        help="Path to script file"
    )

    parser.add_argument(
        "transcript",
        type=Path,
        help="Path to transcript file (one utterance per line)"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every snapshot, not just changes"
    )

    parser.add_argument(
        "-c", "--char-by-char",
        action="store_true",
        help="Simulate partial results growing one character at a time"
    )

    args: argparse.Namespace = parser.parse_args()

    try:
        transcript_lines: list[str] = load_transcript(args.transcript)
        script_text: str = load_script(args.script)
    except OSError as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not transcript_lines:
        print("Error: No transcript lines found", file=sys.stderr)
        sys.exit(1)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            replay_transcript(transcript_lines, script_text, f,
                              args.verbose, args.char_by_char)
        print(f"Debug log written to: {args.output}")
    else:
        replay_transcript(transcript_lines, script_text, sys.stdout,
                          args.verbose, args.char_by_char)


if __name__ == "__main__":
    main()
