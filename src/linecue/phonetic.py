"""
Phonetic tokenization of script and transcript text.

Every non-whitespace character becomes one token: its romanized form
(pinyin syllable for CJK ideographs, accent-free letter for Latin text),
or the lowercased character itself when no romanization exists. Text is
NFC-normalized first so a decomposed accent stays with its letter.
"""

import unicodedata
from functools import lru_cache

from unidecode import unidecode


@lru_cache(maxsize=8192)
def to_phonetic(char: str) -> str:
    """Return the phonetic token for a single character.

    Never fails: characters unidecode cannot transliterate fall back to
    their own lowercase form.
    """
    phonetic: str = unidecode(char).strip().lower()
    return phonetic if phonetic else char.lower()


def normalize_text(text: str) -> str:
    """Compose decomposed characters (NFC)."""
    return unicodedata.normalize("NFC", text)


def tokenize(text: str) -> list[str]:
    """Convert text to an ordered list of phonetic tokens, skipping whitespace."""
    return [to_phonetic(char) for char in normalize_text(text) if not char.isspace()]


def token_offsets(text: str) -> list[int]:
    """Character offset in the NFC form of `text` of each token produced by tokenize()."""
    return [i for i, char in enumerate(normalize_text(text)) if not char.isspace()]
