"""
Approximate equality between phonetic tokens.

Two tokens are the same spoken unit when their normalized edit distance
stays under a threshold. Single-character tokens carry too little
information for a distance ratio, so they must match exactly.
"""

from rapidfuzz.distance import Levenshtein

DEFAULT_FUZZY_THRESHOLD: float = 0.35


def edit_distance(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute edit distance."""
    return Levenshtein.distance(a, b)


def fuzzy_equal(a: str, b: str, threshold: float = DEFAULT_FUZZY_THRESHOLD) -> bool:
    """Check whether two tokens should be treated as the same spoken unit.

    Args:
        a: First token
        b: Second token
        threshold: Maximum normalized edit distance (exclusive)

    Returns:
        True if the tokens are equal, or both longer than one character
        and within the distance threshold.
    """
    if a == b:
        return True
    if len(a) <= 1 and len(b) <= 1:
        return False
    max_len: int = max(len(a), len(b))
    return edit_distance(a, b) / max_len < threshold
