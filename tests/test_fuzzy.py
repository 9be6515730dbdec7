"""
Tests for fuzzy token comparison.
"""

import pytest

from linecue.fuzzy import DEFAULT_FUZZY_THRESHOLD, edit_distance, fuzzy_equal


def test_edit_distance() -> None:
    """Edit distance should count single character edits."""
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("shi", "si") == 1
    assert edit_distance("", "abc") == 3
    assert edit_distance("hao", "hao") == 0


def test_default_threshold() -> None:
    """The default threshold should be 0.35."""
    assert DEFAULT_FUZZY_THRESHOLD == pytest.approx(0.35)


class TestFuzzyEqual:
    """Tests for fuzzy_equal."""

    def test_identical_tokens_match(self) -> None:
        """Identical tokens always match, even single characters."""
        assert fuzzy_equal("ni", "ni")
        assert fuzzy_equal("a", "a")
        assert fuzzy_equal("", "")

    def test_single_characters_need_exact_match(self) -> None:
        """Distinct single-character tokens never match."""
        assert not fuzzy_equal("a", "b")
        assert not fuzzy_equal("n", "m", threshold=0.99)

    def test_close_pinyin_matches(self) -> None:
        """One edit in a three letter syllable is under the threshold."""
        assert fuzzy_equal("shi", "si")
        assert fuzzy_equal("zhang", "zang")
        assert fuzzy_equal("jie", "jin")

    def test_distant_pinyin_does_not_match(self) -> None:
        """Unrelated syllables should not match."""
        assert not fuzzy_equal("ni", "hao")
        assert not fuzzy_equal("tian", "qi")

    def test_one_edit_in_two_letters_is_too_much(self) -> None:
        """A ratio of 0.5 is above the default threshold."""
        assert not fuzzy_equal("ni", "li")
        assert not fuzzy_equal("a", "ab")

    def test_threshold_is_exclusive(self) -> None:
        """A ratio equal to the threshold should not match."""
        assert not fuzzy_equal("ni", "li", threshold=0.5)
        assert fuzzy_equal("ni", "li", threshold=0.51)

    def test_symmetric(self) -> None:
        """Comparison should not depend on argument order."""
        assert fuzzy_equal("si", "shi") == fuzzy_equal("shi", "si")
        assert fuzzy_equal("hao", "ni") == fuzzy_equal("ni", "hao")
