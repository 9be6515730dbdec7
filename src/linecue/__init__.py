"""
linecue - Teleprompter line tracking driven by speech recognition.

Follows a speaker through a script line by line: which line is being read
and how far into it, tolerant of misrecognized characters.
"""

__version__ = "0.1.0"

from .fuzzy import fuzzy_equal
from .phonetic import tokenize
from .script_parser import ScriptLine, prepare_script
from .threaded_tracker import ThreadedTracker
from .tracker import DisplayLines, LineTracker, TrackerPosition
from .transcript import TranscriptAccumulator

__all__ = [
    "tokenize",
    "fuzzy_equal",
    "ScriptLine",
    "prepare_script",
    "LineTracker",
    "TrackerPosition",
    "DisplayLines",
    "ThreadedTracker",
    "TranscriptAccumulator",
]
