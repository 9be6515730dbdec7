"""
Tests for in-line progress matching.
"""

from linecue.tracker import LineTracker, TrackerPosition


class TestInLineProgress:
    """Tests for progress within the current line."""

    def test_whole_line_spoken(self) -> None:
        """Speaking the full line should move to its last token."""
        tracker: LineTracker = LineTracker(["nihao", "jintian"])

        position: TrackerPosition = tracker.update("nihao")

        assert (position.line_index, position.char_index) == (0, 4)
        assert not position.is_jump

    def test_partial_line_spoken(self) -> None:
        """Progress should stop at the last matched token."""
        tracker: LineTracker = LineTracker(["你好世界", "今天天气很好"])

        position: TrackerPosition = tracker.update("你好")

        assert (position.line_index, position.char_index) == (0, 1)

    def test_homophones_advance(self) -> None:
        """Characters with the same reading should count as matches."""
        tracker: LineTracker = LineTracker(["你好世界"])

        position: TrackerPosition = tracker.update("你好是节")

        assert position.char_index == 3

    def test_single_matching_token_is_not_enough(self) -> None:
        """One match is below the minimum match count."""
        tracker: LineTracker = LineTracker(["你好世界"])

        position: TrackerPosition = tracker.update("你")

        assert position.char_index == 0

    def test_single_noisy_token_does_not_advance(self) -> None:
        """A token far from every line token should not move the cursor."""
        tracker: LineTracker = LineTracker(["你好世界"])

        position: TrackerPosition = tracker.update("哈")

        assert position.char_index == 0

    def test_match_count_threshold_is_configurable(self) -> None:
        """With min_match_count=1 a single match is enough."""
        tracker: LineTracker = LineTracker(["你好世界"], min_match_count=1)

        position: TrackerPosition = tracker.update("你好")
        assert position.char_index == 1

        tracker.reset()
        position = tracker.update("好")
        assert position.char_index == 1

    def test_tokens_outside_window_do_not_match(self) -> None:
        """Tokens too far ahead of the cursor are ignored."""
        tracker: LineTracker = LineTracker(["abcdefgh"])

        # 'g' and 'h' are more than in_line_window positions away from 0
        position: TrackerPosition = tracker.update("gh")

        assert position.char_index == 0

    def test_skipped_token_within_window(self) -> None:
        """A missing token inside the window should be skipped over."""
        tracker: LineTracker = LineTracker(["abcdef"])

        position: TrackerPosition = tracker.update("acd")

        assert position.char_index == 3

    def test_only_tail_is_matched(self) -> None:
        """Tokens older than the tail window are ignored."""
        tracker: LineTracker = LineTracker(["abcde"], tail_size=2)

        # Only "xy" is in the tail
        position: TrackerPosition = tracker.update("abcxy")

        assert position.char_index == 0


class TestMonotonicity:
    """Tests that positions never move backwards by themselves."""

    def test_repeated_update_is_idempotent(self) -> None:
        """Feeding the same snapshot twice should not change the position."""
        tracker: LineTracker = LineTracker(["nihao", "jintian"])

        first: TrackerPosition = tracker.update("nihao")
        second: TrackerPosition = tracker.update("nihao")

        assert (first.line_index, first.char_index) == (second.line_index, second.char_index)

    def test_repeated_update_on_repeated_characters(self) -> None:
        """The same snapshot should not advance twice through a line of repeats."""
        tracker: LineTracker = LineTracker(["哈哈哈哈哈哈哈哈"])

        first: TrackerPosition = tracker.update("哈哈哈哈")
        second: TrackerPosition = tracker.update("哈哈哈哈")

        assert first.char_index == 3
        assert second.char_index == 3

    def test_snapshot_is_matched_again_after_reset(self) -> None:
        """Reset forgets the last snapshot."""
        tracker: LineTracker = LineTracker(["哈哈哈哈哈哈哈哈"])
        tracker.update("哈哈哈哈")

        tracker.reset()
        position: TrackerPosition = tracker.update("哈哈哈哈")

        assert position.char_index == 3

    def test_revised_snapshot_does_not_move_back(self) -> None:
        """A shorter revised snapshot should not reduce progress."""
        tracker: LineTracker = LineTracker(["nihao", "jintian"])

        tracker.update("nihao")
        position: TrackerPosition = tracker.update("ni")

        assert (position.line_index, position.char_index) == (0, 4)

    def test_progress_sequence_is_non_decreasing(self) -> None:
        """Growing snapshots should never decrease the char index."""
        tracker: LineTracker = LineTracker(["今天天气很好我们出去玩"])
        text: str = "今天天气很好我们出去玩"

        last: int = 0
        for end in range(1, len(text) + 1):
            position: TrackerPosition = tracker.update(text[:end])
            assert position.char_index >= last
            last = position.char_index

        assert last == len(text) - 1


class TestMatchLineProgress:
    """Direct tests for match_line_progress."""

    def test_invalid_line_returns_start(self) -> None:
        """Out of range lines should leave the position unchanged."""
        tracker: LineTracker = LineTracker(["abc"])

        assert tracker.match_line_progress(["a", "b"], 5, 0) == 0
        assert tracker.match_line_progress(["a", "b"], -1, 1) == 1

    def test_start_past_end_returns_start(self) -> None:
        """Starting at or past the end of the line returns the start."""
        tracker: LineTracker = LineTracker(["abc"])

        assert tracker.match_line_progress(["a", "b", "c"], 0, 3) == 3

    def test_returns_index_of_last_match(self) -> None:
        """The result is the matched token index, not one past it."""
        tracker: LineTracker = LineTracker(["abc"])

        assert tracker.match_line_progress(["a", "b"], 0, 0) == 1
