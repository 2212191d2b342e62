"""Tests for ChunkScheduler window planning."""

from __future__ import annotations

import pytest

from voxscribe.exceptions import ConfigError
from voxscribe.pipeline.chunking import ChunkScheduler


def _covered(windows: list, total: int) -> list[int]:
    counts = [0] * total
    for w in windows:
        for i in range(w.start_sample, w.end_sample):
            counts[i] += 1
    return counts


class TestStep:
    def test_default_overlap_step(self) -> None:
        scheduler = ChunkScheduler(240_000, 0.10)
        assert scheduler.step == 216_000

    def test_zero_overlap_step_equals_chunk(self) -> None:
        assert ChunkScheduler(1000, 0.0).step == 1000

    def test_non_positive_step_falls_back_to_chunk(self) -> None:
        # round(1 * 0.9) == 1 -> step 0 -> fallback
        assert ChunkScheduler(1, 0.9).step == 1


class TestValidation:
    @pytest.mark.parametrize("chunk", [0, -5])
    def test_rejects_non_positive_chunk(self, chunk: int) -> None:
        with pytest.raises(ConfigError):
            ChunkScheduler(chunk, 0.1)

    @pytest.mark.parametrize("overlap", [-0.1, 1.0, 1.5])
    def test_rejects_overlap_out_of_range(self, overlap: float) -> None:
        with pytest.raises(ConfigError):
            ChunkScheduler(1000, overlap)


class TestWindows:
    def test_zero_samples_yields_no_windows(self) -> None:
        scheduler = ChunkScheduler(1000, 0.1)
        assert scheduler.plan(0) == []
        assert scheduler.num_windows(0) == 0

    def test_short_audio_single_window(self) -> None:
        # 5s of audio into a 15s window
        scheduler = ChunkScheduler(240_000, 0.1)
        windows = scheduler.plan(80_000)
        assert len(windows) == 1
        only = windows[0]
        assert (only.index, only.start_sample, only.end_sample) == (0, 0, 80_000)
        assert only.is_last

    def test_exact_chunk_single_window(self) -> None:
        windows = ChunkScheduler(1000, 0.1).plan(1000)
        assert len(windows) == 1
        assert windows[0].end_sample == 1000

    def test_two_steps_plus_chunk_yields_three_windows(self) -> None:
        scheduler = ChunkScheduler(1000, 0.1)
        step = scheduler.step
        total = 2 * step + 1000
        windows = scheduler.plan(total)

        assert len(windows) == 3
        assert [w.start_sample for w in windows] == [0, step, 2 * step]
        assert windows[2].end_sample == total
        assert [w.is_last for w in windows] == [False, False, True]
        # consecutive windows overlap by C - step samples
        for a, b in zip(windows, windows[1:]):
            assert a.end_sample - b.start_sample == 1000 - step

    def test_last_window_clipped(self) -> None:
        windows = ChunkScheduler(1000, 0.0).plan(2500)
        assert [(w.start_sample, w.end_sample) for w in windows] == [
            (0, 1000),
            (1000, 2000),
            (2000, 2500),
        ]

    @pytest.mark.parametrize(
        ("total", "chunk", "overlap"),
        [(1, 10, 0.0), (95, 10, 0.1), (1234, 100, 0.25), (999, 1000, 0.5), (5000, 7, 0.3)],
    )
    def test_union_covers_audio(self, total: int, chunk: int, overlap: float) -> None:
        scheduler = ChunkScheduler(chunk, overlap)
        windows = scheduler.plan(total)

        assert len(windows) == scheduler.num_windows(total)
        assert windows[-1].end_sample == total
        assert all(w.num_samples <= chunk for w in windows)
        counts = _covered(windows, total)
        assert min(counts) >= 1
        # Only the declared overlap is covered twice.
        overlap_samples = chunk - scheduler.step
        assert sum(c - 1 for c in counts) <= overlap_samples * (len(windows) - 1)
        if total <= chunk:
            assert len(windows) == 1

    def test_window_slice_is_view(self) -> None:
        import numpy as np

        audio = np.arange(100, dtype=np.float32)
        window = ChunkScheduler(40, 0.0).plan(100)[1]
        view = window.slice(audio)
        assert view[0] == 40.0
        assert len(view) == 40
        assert np.shares_memory(view, audio)
