"""Tests for FeatureExtractor and mel filter loading."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from voxscribe._dsp import log_mel_spectrogram, mel_filterbank
from voxscribe.exceptions import ConfigError, ShapeError
from voxscribe.pipeline.features import FeatureExtractor, load_mel_filters
from tests.helpers import CAPACITY_SAMPLES, make_sine


class TestExtract:
    def test_output_padded_to_capacity(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(CAPACITY_SAMPLES)
        features = extractor.extract(make_sine(8000))

        assert features.values.shape == (1, 128, 200)
        assert features.values.dtype == np.float32
        assert features.valid_frames == 50

    def test_padding_is_silence_appended_to_pcm(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(CAPACITY_SAMPLES)
        audio = make_sine(CAPACITY_SAMPLES // 2)

        features = extractor.extract(audio)

        expected = log_mel_spectrogram(
            np.pad(audio, (0, CAPACITY_SAMPLES - len(audio))), extractor.filterbank
        )
        np.testing.assert_allclose(features.values[0], expected, rtol=1e-6, atol=1e-6)

    def test_padded_frames_sit_at_silence_floor(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(CAPACITY_SAMPLES)
        features = extractor.extract(make_sine(8000))

        valid = features.values[0, :, :50]
        tail = features.values[0, :, 60:]
        # Silence clamps to max - 8 in log10 space, i.e. 2.0 below the peak.
        np.testing.assert_allclose(tail, valid.max() - 2.0, atol=1e-5)
        assert np.all(tail != 0.0)

    def test_full_capacity_has_no_padding(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(CAPACITY_SAMPLES)
        features = extractor.extract(make_sine(CAPACITY_SAMPLES))
        assert features.valid_frames == features.time_frames == 200

    def test_deterministic(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(CAPACITY_SAMPLES)
        audio = make_sine(12345, frequency=880.0)
        first = extractor.extract(audio)
        second = extractor.extract(audio.copy())
        assert first.values.tobytes() == second.values.tobytes()

    def test_identical_filterbank_gives_identical_features(self) -> None:
        fb = mel_filterbank()
        a = FeatureExtractor(200, filterbank=fb).extract(make_sine(4000))
        b = FeatureExtractor(200, filterbank=fb.copy()).extract(make_sine(4000))
        assert np.array_equal(a.values, b.values)

    def test_too_long_window_raises_shape_error(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(CAPACITY_SAMPLES)
        with pytest.raises(ShapeError):
            extractor.extract(make_sine(CAPACITY_SAMPLES + 160))

    def test_stereo_input_rejected(self) -> None:
        extractor = FeatureExtractor(10)
        with pytest.raises(ShapeError):
            extractor.extract(np.zeros((2, 800), dtype=np.float32))

    def test_tiny_window_yields_all_padding(self) -> None:
        features = FeatureExtractor(10).extract(np.zeros(100, dtype=np.float32))
        assert features.valid_frames == 0
        assert features.values.shape == (1, 128, 10)
        # All-silent input: log10(1e-10) mapped through (x + 4) / 4.
        np.testing.assert_allclose(features.values, -1.5)

    def test_log_mel_range(self) -> None:
        features = FeatureExtractor(100).extract(make_sine(16000))
        valid = features.values[0, :, : features.valid_frames]
        # (x + 4) / 4 with a dynamic range of 8 -> spread of at most 2
        assert valid.max() - valid.min() <= 2.0 + 1e-5


class TestFilterbank:
    def test_filterbank_is_read_only(self) -> None:
        extractor = FeatureExtractor(10)
        with pytest.raises(ValueError):
            extractor.filterbank[0, 0] = 1.0

    def test_caller_array_not_frozen(self) -> None:
        fb = mel_filterbank()
        FeatureExtractor(10, filterbank=fb)
        fb[0, 0] = fb[0, 0]  # still writable

    def test_rejects_wrong_filterbank_width(self) -> None:
        with pytest.raises(ConfigError):
            FeatureExtractor(10, filterbank=np.zeros((128, 100), dtype=np.float32))

    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ConfigError):
            FeatureExtractor(0)

    def test_capacity_in_samples(self) -> None:
        extractor = FeatureExtractor.for_capacity_samples(480_000)
        assert extractor.capacity_frames == 3000
        assert extractor.capacity_samples == 480_000


class TestLoadMelFilters:
    def test_loads_little_endian_float32(self, tmp_path: Path) -> None:
        fb = mel_filterbank()
        path = tmp_path / "melfilters128.bytes"
        fb.astype("<f4").tofile(path)

        loaded = load_mel_filters(path)
        assert loaded.shape == (128, 201)
        np.testing.assert_array_equal(loaded, fb)

    def test_wrong_size_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.bytes"
        np.zeros(10, dtype="<f4").tofile(path)
        with pytest.raises(ConfigError, match="expected 128 x 201"):
            load_mel_filters(path)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_mel_filters(tmp_path / "missing.bytes")
