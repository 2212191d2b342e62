"""Centralized DSP primitives for voxscribe.

Pure signal processing functions: analysis window, centered STFT, Slaney mel
filterbank, log-mel compression and polyphase resampling.
Zero imports from voxscribe.pipeline or voxscribe.engines — this module sits
at the bottom of the dependency graph alongside _audio_constants.
"""

from __future__ import annotations

from functools import lru_cache
from math import gcd

import numpy as np
from scipy.signal import get_window, resample_poly

from voxscribe._audio_constants import (
    DEFAULT_FFT_SIZE,
    DEFAULT_HOP_LENGTH,
    DEFAULT_N_MELS,
    LOG_MEL_DYNAMIC_RANGE,
    LOG_MEL_FLOOR,
    STT_SAMPLE_RATE,
)

__all__ = [
    "hann_window",
    "log_mel_spectrogram",
    "mel_filterbank",
    "power_spectrogram",
    "resample",
]

# ---------------------------------------------------------------------------
# Window functions
# ---------------------------------------------------------------------------


@lru_cache(maxsize=8)
def _hann_window_cached(size: int) -> tuple[float, ...]:
    # Periodic Hann (fftbins=True), as torch.hann_window.
    return tuple(get_window("hann", size, fftbins=True).astype(np.float32).tolist())


def hann_window(size: int) -> np.ndarray:
    """Periodic Hann window of given size (float32, cached)."""
    return np.array(_hann_window_cached(size), dtype=np.float32)


# ---------------------------------------------------------------------------
# STFT
# ---------------------------------------------------------------------------


def power_spectrogram(
    signal: np.ndarray,
    n_fft: int = DEFAULT_FFT_SIZE,
    hop_length: int = DEFAULT_HOP_LENGTH,
) -> np.ndarray:
    """Centered power spectrogram with the trailing frame dropped.

    The signal is reflect-padded by ``n_fft // 2`` on both sides, so a signal
    of ``L`` samples yields exactly ``L // hop_length`` frames.

    Args:
        signal: 1-D float32 time-domain signal.
        n_fft: FFT window size.
        hop_length: Hop between successive frames.

    Returns:
        Float32 array of shape ``(n_fft // 2 + 1, L // hop_length)``.
    """
    n_freqs = n_fft // 2 + 1
    n_frames = len(signal) // hop_length
    if n_frames == 0:
        return np.zeros((n_freqs, 0), dtype=np.float32)

    pad = n_fft // 2
    # Reflect padding needs at least pad + 1 samples.
    mode = "reflect" if len(signal) > pad else "constant"
    padded = np.pad(signal.astype(np.float32, copy=False), (pad, pad), mode=mode)

    frames = np.lib.stride_tricks.sliding_window_view(padded, n_fft)[::hop_length]
    frames = frames[:n_frames] * hann_window(n_fft)
    spectrum = np.fft.rfft(frames, n=n_fft, axis=1)
    power = (spectrum.real**2 + spectrum.imag**2).astype(np.float32)
    return np.ascontiguousarray(power.T)


# ---------------------------------------------------------------------------
# Mel filterbank
# ---------------------------------------------------------------------------

_MIN_LOG_HZ = 1000.0
_MIN_LOG_MEL = 15.0
_LOGSTEP = 27.0 / np.log(6.4)


def _hz_to_mel(freq: np.ndarray) -> np.ndarray:
    """Slaney mel scale: linear below 1kHz, logarithmic above."""
    freq = np.asarray(freq, dtype=np.float64)
    mels = 3.0 * freq / 200.0
    log_region = freq >= _MIN_LOG_HZ
    mels[log_region] = _MIN_LOG_MEL + np.log(freq[log_region] / _MIN_LOG_HZ) * _LOGSTEP
    return mels


def _mel_to_hz(mels: np.ndarray) -> np.ndarray:
    mels = np.asarray(mels, dtype=np.float64)
    freq = 200.0 * mels / 3.0
    log_region = mels >= _MIN_LOG_MEL
    freq[log_region] = _MIN_LOG_HZ * np.exp((mels[log_region] - _MIN_LOG_MEL) / _LOGSTEP)
    return freq


@lru_cache(maxsize=8)
def _mel_filterbank_cached(
    n_mels: int,
    n_fft: int,
    sample_rate: int,
    fmin: float,
    fmax: float,
) -> tuple[tuple[float, ...], ...]:
    n_freqs = n_fft // 2 + 1
    fft_freqs = np.linspace(0, sample_rate // 2, n_freqs)

    mel_points = np.linspace(
        _hz_to_mel(np.array([fmin]))[0], _hz_to_mel(np.array([fmax]))[0], n_mels + 2
    )
    hz_points = _mel_to_hz(mel_points)

    # Triangular filters: rising slope up to the centre, falling after it.
    filter_diff = np.diff(hz_points)
    slopes = hz_points[np.newaxis, :] - fft_freqs[:, np.newaxis]
    down_slopes = -slopes[:, :-2] / filter_diff[:-1]
    up_slopes = slopes[:, 2:] / filter_diff[1:]
    filterbank = np.maximum(0.0, np.minimum(down_slopes, up_slopes))

    # Slaney area normalization.
    enorm = 2.0 / (hz_points[2 : n_mels + 2] - hz_points[:n_mels])
    filterbank *= enorm[np.newaxis, :]

    return tuple(tuple(float(v) for v in row) for row in filterbank.T)


def mel_filterbank(
    n_mels: int = DEFAULT_N_MELS,
    n_fft: int = DEFAULT_FFT_SIZE,
    sample_rate: int = STT_SAMPLE_RATE,
    fmin: float = 0.0,
    fmax: float | None = None,
) -> np.ndarray:
    """Slaney-normalized mel filterbank matrix.

    Args:
        n_mels: Number of mel bands.
        n_fft: FFT size (determines frequency resolution).
        sample_rate: Audio sample rate in Hz.
        fmin: Lowest frequency (Hz) for the filterbank.
        fmax: Highest frequency (Hz). Defaults to ``sample_rate / 2``.

    Returns:
        Float32 array of shape ``(n_mels, n_fft // 2 + 1)``.
    """
    if fmax is None:
        fmax = sample_rate / 2.0

    cached = _mel_filterbank_cached(n_mels, n_fft, sample_rate, fmin, fmax)
    return np.array(cached, dtype=np.float32)


# ---------------------------------------------------------------------------
# Log-mel
# ---------------------------------------------------------------------------


def log_mel_spectrogram(
    signal: np.ndarray,
    filterbank: np.ndarray,
    n_fft: int = DEFAULT_FFT_SIZE,
    hop_length: int = DEFAULT_HOP_LENGTH,
) -> np.ndarray:
    """Whisper-style log-mel spectrogram.

    ``log10`` of the mel energies, clamped to ``max - 8`` and mapped with
    ``(x + 4) / 4``.

    Args:
        signal: 1-D float32 time-domain signal.
        filterbank: Mel filterbank of shape ``(n_mels, n_fft // 2 + 1)``.
        n_fft: FFT window size.
        hop_length: Hop between successive frames.

    Returns:
        Float32 array of shape ``(n_mels, len(signal) // hop_length)``.
    """
    power = power_spectrogram(signal, n_fft=n_fft, hop_length=hop_length)
    if power.shape[1] == 0:
        return np.zeros((filterbank.shape[0], 0), dtype=np.float32)

    mel = filterbank @ power
    log_spec = np.log10(np.maximum(mel, LOG_MEL_FLOOR))
    log_spec = np.maximum(log_spec, log_spec.max() - LOG_MEL_DYNAMIC_RANGE)
    return ((log_spec + 4.0) / 4.0).astype(np.float32)


# ---------------------------------------------------------------------------
# Resample
# ---------------------------------------------------------------------------


def resample(audio: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Resample audio from one sample rate to another.

    Uses ``scipy.signal.resample_poly`` for high-quality polyphase resampling.
    Returns the input unchanged when ``from_rate == to_rate``.

    Args:
        audio: 1-D float32 audio signal.
        from_rate: Source sample rate in Hz.
        to_rate: Target sample rate in Hz.

    Returns:
        Float32 resampled audio.
    """
    if from_rate == to_rate:
        return audio
    if audio.size == 0:
        return np.zeros(0, dtype=np.float32)

    divisor = gcd(from_rate, to_rate)
    up = to_rate // divisor
    down = from_rate // divisor

    resampled = resample_poly(audio, up, down)
    return np.asarray(resampled, dtype=np.float32)
