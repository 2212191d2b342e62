"""Tests for ChunkStitcher."""

from __future__ import annotations

import pytest

from voxscribe._types import StopReason, TranscriptionResult
from voxscribe.exceptions import ConfigError
from voxscribe.pipeline.stitching import ChunkStitcher, boundary_overlap


def _r(text: str, tokens: tuple[int, ...] = ()) -> TranscriptionResult:
    return TranscriptionResult(text=text, tokens=tokens, stop_reason=StopReason.EOS)


class TestDefaultStitching:
    def test_empty_input(self) -> None:
        result = ChunkStitcher().stitch([])
        assert result.text == ""
        assert result.tokens == ()

    def test_single_window_verbatim(self) -> None:
        result = ChunkStitcher().stitch([_r("  Hello there.", (5, 6))])
        assert result.text == "  Hello there."
        assert result.tokens == (5, 6)

    def test_joins_with_single_space_in_order(self) -> None:
        result = ChunkStitcher().stitch([_r("one two", (1, 2)), _r("three", (3,)), _r("four", (4,))])
        assert result.text == "one two three four"
        assert result.tokens == (1, 2, 3, 4)

    def test_overlap_duplicates_kept_by_default(self) -> None:
        result = ChunkStitcher().stitch([_r("the quick brown"), _r("brown fox")])
        assert result.text == "the quick brown brown fox"

    def test_empty_window_adds_no_separator(self) -> None:
        result = ChunkStitcher().stitch([_r("a", (1,)), _r("", ()), _r("b", (2,))])
        assert result.text == "a b"
        assert result.tokens == (1, 2)

    def test_window_texts_stripped(self) -> None:
        result = ChunkStitcher().stitch([_r(" a ", (1,)), _r("b", (2,))])
        assert result.text == "a b"

    def test_whitespace_window_adds_no_separator(self) -> None:
        result = ChunkStitcher().stitch([_r("a"), _r("   "), _r("b")])
        assert result.text == "a b"

    def test_failed_windows_recorded(self) -> None:
        result = ChunkStitcher().stitch([_r("a"), _r("c")], failed_windows=[1])
        assert result.text == "a c"
        assert result.failed_windows == (1,)

    def test_only_failed_windows(self) -> None:
        result = ChunkStitcher().stitch([], failed_windows=[0, 1])
        assert result.text == ""
        assert result.failed_windows == (0, 1)


class TestReconcileBoundaries:
    def test_drops_repeated_words(self) -> None:
        stitcher = ChunkStitcher(reconcile_boundaries=True)
        result = stitcher.stitch([_r("we choose to go to", (1,)), _r("to go to the moon", (2,))])
        assert result.text == "we choose to go to the moon"
        # tokens are never reconciled
        assert result.tokens == (1, 2)

    def test_comparison_ignores_case_and_punctuation(self) -> None:
        stitcher = ChunkStitcher(reconcile_boundaries=True)
        result = stitcher.stitch([_r("And so, my fellow Americans"), _r("americans: ask not")])
        assert result.text == "And so, my fellow Americans ask not"

    def test_no_overlap_keeps_everything(self) -> None:
        stitcher = ChunkStitcher(reconcile_boundaries=True)
        assert stitcher.stitch([_r("alpha beta"), _r("gamma")]).text == "alpha beta gamma"

    def test_fully_duplicated_window_disappears(self) -> None:
        stitcher = ChunkStitcher(reconcile_boundaries=True)
        assert stitcher.stitch([_r("a b c"), _r("b c"), _r("d")]).text == "a b c d"

    def test_max_overlap_words_bounds_search(self) -> None:
        stitcher = ChunkStitcher(reconcile_boundaries=True, max_overlap_words=1)
        assert stitcher.stitch([_r("x y z"), _r("y z w")]).text == "x y z y z w"

    def test_rejects_non_positive_bound(self) -> None:
        with pytest.raises(ConfigError):
            ChunkStitcher(max_overlap_words=0)


class TestBoundaryOverlap:
    def test_longest_run(self) -> None:
        assert boundary_overlap(["a", "b", "a", "b"], ["a", "b", "c"], 10) == 2

    def test_punctuation_only_words_never_match(self) -> None:
        assert boundary_overlap(["end", "-"], ["-", "start"], 10) == 0
