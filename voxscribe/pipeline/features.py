"""FeatureExtractor — log-mel features for one audio window.

The mel filterbank is loaded once (from a ``melfilters128.bytes``-style
float32 resource or computed Slaney-style) and is read-only afterwards, so a
single extractor can be shared by every window of a run.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from voxscribe._audio_constants import (
    DEFAULT_FFT_SIZE,
    DEFAULT_HOP_LENGTH,
    DEFAULT_N_MELS,
    STT_SAMPLE_RATE,
)
from voxscribe._dsp import log_mel_spectrogram, mel_filterbank
from voxscribe._types import AcousticFeatures
from voxscribe.exceptions import ConfigError, ShapeError
from voxscribe.logging import get_logger

logger = get_logger("pipeline.features")


def load_mel_filters(
    path: str | Path,
    n_mels: int = DEFAULT_N_MELS,
    n_fft: int = DEFAULT_FFT_SIZE,
) -> np.ndarray:
    """Read a raw little-endian float32 filterbank file.

    The file holds ``n_mels * (n_fft // 2 + 1)`` values stored row-major as
    ``(n_mels, n_freqs)``.

    Raises:
        ConfigError: If the file is missing or has the wrong number of values.
    """
    n_freqs = n_fft // 2 + 1
    try:
        raw = np.fromfile(Path(path), dtype="<f4")
    except OSError as exc:
        msg = f"Could not read mel filters '{path}': {exc}"
        raise ConfigError(msg) from exc

    if raw.size != n_mels * n_freqs:
        msg = (
            f"Mel filters '{path}' hold {raw.size} values, "
            f"expected {n_mels} x {n_freqs} = {n_mels * n_freqs}"
        )
        raise ConfigError(msg)

    return raw.reshape(n_mels, n_freqs).astype(np.float32)


class FeatureExtractor:
    """Converts a mono 16kHz PCM window into padded log-mel features.

    Args:
        capacity_frames: Encoder input length in frames. Audio is
            zero-padded to ``capacity_frames * hop_length`` samples before
            the transform, so features have exactly this many frames.
        filterbank: Mel filterbank ``(n_mels, n_fft // 2 + 1)``. Computed
            once when omitted.
        n_fft: FFT window size.
        hop_length: Hop between frames in samples.
        sample_rate: Expected input sample rate.

    Raises:
        ConfigError: If the filterbank shape does not match ``n_fft`` or
            ``capacity_frames`` is not positive.
    """

    def __init__(
        self,
        capacity_frames: int,
        filterbank: np.ndarray | None = None,
        n_mels: int = DEFAULT_N_MELS,
        n_fft: int = DEFAULT_FFT_SIZE,
        hop_length: int = DEFAULT_HOP_LENGTH,
        sample_rate: int = STT_SAMPLE_RATE,
    ) -> None:
        if capacity_frames <= 0:
            msg = f"capacity_frames must be > 0, got {capacity_frames}"
            raise ConfigError(msg)

        if filterbank is None:
            filterbank = mel_filterbank(n_mels=n_mels, n_fft=n_fft, sample_rate=sample_rate)

        n_freqs = n_fft // 2 + 1
        if filterbank.ndim != 2 or filterbank.shape[1] != n_freqs:
            msg = f"filterbank must have shape (n_mels, {n_freqs}), got {filterbank.shape}"
            raise ConfigError(msg)

        fb = np.array(filterbank, dtype=np.float32, copy=True)
        fb.setflags(write=False)
        self._filterbank = fb
        self._capacity_frames = capacity_frames
        self._n_fft = n_fft
        self._hop_length = hop_length

    @classmethod
    def for_capacity_samples(
        cls,
        capacity_samples: int,
        filterbank: np.ndarray | None = None,
        n_mels: int = DEFAULT_N_MELS,
        n_fft: int = DEFAULT_FFT_SIZE,
        hop_length: int = DEFAULT_HOP_LENGTH,
    ) -> FeatureExtractor:
        """Build an extractor whose capacity is given in samples (480000 -> 3000 frames)."""
        return cls(
            capacity_frames=capacity_samples // hop_length,
            filterbank=filterbank,
            n_mels=n_mels,
            n_fft=n_fft,
            hop_length=hop_length,
        )

    @property
    def filterbank(self) -> np.ndarray:
        return self._filterbank

    @property
    def n_mels(self) -> int:
        return int(self._filterbank.shape[0])

    @property
    def hop_length(self) -> int:
        return self._hop_length

    @property
    def capacity_frames(self) -> int:
        return self._capacity_frames

    @property
    def capacity_samples(self) -> int:
        return self._capacity_frames * self._hop_length

    def num_frames(self, num_samples: int) -> int:
        """Frames of real content produced for *num_samples* samples."""
        return num_samples // self._hop_length

    def extract(self, audio: np.ndarray) -> AcousticFeatures:
        """Compute ``[1, n_mels, capacity_frames]`` features for one window.

        Raises:
            ShapeError: If the audio is not 1-D or yields more frames than
                the encoder capacity.
        """
        if audio.ndim != 1:
            msg = f"expected mono 1-D audio, got shape {audio.shape}"
            raise ShapeError(msg)

        raw_frames = self.num_frames(len(audio))
        if raw_frames > self._capacity_frames:
            msg = (
                f"window yields {raw_frames} frames, encoder capacity is "
                f"{self._capacity_frames} frames"
            )
            raise ShapeError(msg)

        # Silence is appended to the PCM so padded frames sit at the log-mel floor.
        padded = np.zeros(self.capacity_samples, dtype=np.float32)
        padded[: len(audio)] = audio
        log_mel = log_mel_spectrogram(
            padded, self._filterbank, n_fft=self._n_fft, hop_length=self._hop_length
        )
        values = log_mel[np.newaxis, :, :]

        logger.debug(
            "features_extracted",
            samples=len(audio),
            valid_frames=raw_frames,
            padded_frames=self._capacity_frames - raw_frames,
        )
        return AcousticFeatures(values=values, valid_frames=raw_frames)
