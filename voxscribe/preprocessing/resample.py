"""ResampleStage — converts audio to the model sample rate.

Uses scipy.signal.resample_poly (via ``voxscribe._dsp.resample``) for
high-quality resampling. Ingestion guarantees mono input; no multi-channel
handling here.
"""

from __future__ import annotations

import numpy as np

from voxscribe._audio_constants import STT_SAMPLE_RATE
from voxscribe._dsp import resample
from voxscribe.exceptions import AudioFormatError


class ResampleStage:
    """Resampling collaborator used before windowing.

    Converts audio from any sample rate to the target sample rate (default 16kHz).

    Args:
        target_sample_rate: Target sample rate in Hz (default: 16000).
    """

    def __init__(self, target_sample_rate: int = STT_SAMPLE_RATE) -> None:
        self._target_sample_rate = target_sample_rate

    @property
    def name(self) -> str:
        """Identifier name for the stage."""
        return "resample"

    @property
    def target_sample_rate(self) -> int:
        return self._target_sample_rate

    def process(self, audio: np.ndarray, sample_rate: int) -> tuple[np.ndarray, int]:
        """Convert audio to target sample rate.

        If the audio is already at the target sample rate, returns unchanged.
        If the audio is empty, returns an empty float32 array at the target rate.

        Args:
            audio: Mono float32 samples.
            sample_rate: Current audio sample rate in Hz.

        Returns:
            Tuple (resampled float32 audio, target sample rate).

        Raises:
            AudioFormatError: If the sample rate is not a positive integer.
        """
        if sample_rate <= 0:
            msg = f"sample rate must be positive, got {sample_rate}"
            raise AudioFormatError(msg)

        if audio.size == 0:
            return np.zeros(0, dtype=np.float32), self._target_sample_rate

        if sample_rate == self._target_sample_rate:
            return audio, sample_rate

        return resample(audio, sample_rate, self._target_sample_rate), self._target_sample_rate
