"""
Script parsing module that turns pasted script text into tracked lines.

Each line is kept in three forms:
1. Display text - the visible text of the line (Markdown marks removed
   only when rendering is turned on)
2. Phonetic tokens - one per non-whitespace character, used for matching
3. HTML rendering - for display layers that want the formatting back

Lines are tokenized independently and never concatenated, so a matching
error on one line cannot affect another line's tokens.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from html.parser import HTMLParser

import markdown

from .phonetic import normalize_text, token_offsets, tokenize


@dataclass
class ScriptLine:
    """A line from the script with its phonetic tokens."""
    text: str  # Display text
    tokens: list[str]  # One phonetic token per non-whitespace character
    # Offset in `text` of each token, for read/unread slicing
    offsets: list[int] = field(default_factory=list)
    html: str = ""  # HTML rendered version (for Markdown)

    @property
    def token_count(self) -> int:
        """Number of phonetic tokens in the line."""
        return len(self.tokens)

    def split_at_token(self, token_index: int) -> tuple[str, str]:
        """Split the display text after the given token.

        Returns:
            Tuple of (read_text, unread_text). A negative index means
            nothing has been read yet.
        """
        if token_index < 0 or not self.offsets:
            return "", self.text
        if token_index >= len(self.offsets):
            return self.text, ""
        cut: int = self.offsets[token_index] + 1
        return self.text[:cut], self.text[cut:]


class HTMLTextExtractor(HTMLParser):
    """Extract the visible text content from rendered HTML."""

    def __init__(self) -> None:
        super().__init__()
        self.parts: list[str] = []

    def handle_data(self, data: str) -> None:
        """Collect text content."""
        self.parts.append(data)

    def get_text(self) -> str:
        """Return the collected text with whitespace runs collapsed."""
        return ' '.join(''.join(self.parts).split())


def render_line(line: str) -> tuple[str, str]:
    """Render one script line as Markdown.

    Returns:
        Tuple of (visible_text, html)
    """
    html: str = markdown.markdown(line)
    extractor: HTMLTextExtractor = HTMLTextExtractor()
    extractor.feed(html)
    extractor.close()
    return extractor.get_text(), html


def prepare_script(text: str, render_markdown: bool = False) -> list[str]:
    """Split pasted script text into trimmed, non-empty lines.

    Args:
        text: The raw script text
        render_markdown: Strip Markdown formatting so marks like '#' or
            '**' are not treated as spoken characters. Off by default
            so script text is kept as written

    Returns:
        List of line texts ready for LineTracker.configure()
    """
    lines: list[str] = []
    for raw_line in text.splitlines():
        line: str = raw_line.strip()
        if not line:
            continue
        if render_markdown:
            line, _html = render_line(line)
            if not line:
                # Pure formatting such as a horizontal rule
                continue
        lines.append(line)
    return lines


def build_line(text: str) -> ScriptLine:
    """Tokenize a single line of display text."""
    text = normalize_text(text)
    return ScriptLine(
        text=text,
        tokens=tokenize(text),
        offsets=token_offsets(text),
        html=markdown.markdown(text) if text.strip() else ""
    )


def build_lines(lines: Iterable[str]) -> list[ScriptLine]:
    """Tokenize each line independently."""
    return [build_line(line) for line in lines]
