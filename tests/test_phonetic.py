"""
Tests for phonetic tokenization.
"""

from linecue.phonetic import to_phonetic, token_offsets, tokenize


class TestToPhonetic:
    """Tests for single character conversion."""

    def test_chinese_characters_become_pinyin(self) -> None:
        """Ideographs should map to their lowercase pinyin syllable."""
        assert to_phonetic("你") == "ni"
        assert to_phonetic("好") == "hao"
        assert to_phonetic("天") == "tian"

    def test_latin_letters_are_lowercased(self) -> None:
        """Latin letters should be lowercased."""
        assert to_phonetic("A") == "a"
        assert to_phonetic("z") == "z"

    def test_diacritics_are_removed(self) -> None:
        """Accented letters should lose their accents."""
        assert to_phonetic("é") == "e"
        assert to_phonetic("Ü") == "u"

    def test_never_empty(self) -> None:
        """Every character should produce a non-empty token."""
        for char in ["1", ",", "😀", ""]:
            assert to_phonetic(char)


class TestTokenize:
    """Tests for text tokenization."""

    def test_one_token_per_character(self) -> None:
        """Each non-whitespace character should become one token."""
        assert tokenize("你好") == ["ni", "hao"]
        assert tokenize("nihao") == ["n", "i", "h", "a", "o"]

    def test_whitespace_is_skipped(self) -> None:
        """Whitespace should never produce tokens."""
        assert tokenize("ni hao") == tokenize("nihao")
        assert tokenize("你 好\n世界") == ["ni", "hao", "shi", "jie"]
        assert tokenize("   \t\n") == []

    def test_homophones_tokenize_identically(self) -> None:
        """Characters with the same reading should produce the same tokens."""
        assert tokenize("世界") == tokenize("是节")

    def test_case_insensitive(self) -> None:
        """Upper and lower case text should tokenize the same."""
        assert tokenize("NiHao") == tokenize("nihao")

    def test_empty_text(self) -> None:
        """Empty input should produce no tokens."""
        assert tokenize("") == []

    def test_decomposed_accent_is_one_token(self) -> None:
        """A letter followed by a combining accent should give one token."""
        assert tokenize("cafe\u0301") == ["c", "a", "f", "e"]
        assert tokenize("cafe\u0301") == tokenize("caf\u00e9")


class TestTokenOffsets:
    """Tests for token to character offset mapping."""

    def test_offsets_skip_whitespace(self) -> None:
        """Offsets should point at the non-whitespace characters."""
        assert token_offsets("a b") == [0, 2]
        assert token_offsets("  你好 ") == [2, 3]

    def test_offsets_align_with_tokens(self) -> None:
        """There should be exactly one offset per token."""
        text: str = "今天 天气, 很好"
        assert len(token_offsets(text)) == len(tokenize(text))

    def test_offsets_follow_normalized_text(self) -> None:
        """Decomposed text should map to offsets in its composed form."""
        assert token_offsets("e\u0301 a") == [0, 2]
