"""Audio decoding functions.

Converts file bytes (WAV, FLAC, OGG, ...) into mono numpy float32 arrays.
"""

from __future__ import annotations

import io
import wave
from pathlib import Path

import numpy as np
import soundfile as sf

from voxscribe._audio_constants import PCM_INT16_SCALE, PCM_UINT8_SCALE
from voxscribe.exceptions import AudioFormatError
from voxscribe.logging import get_logger

logger = get_logger("preprocessing.audio_io")


def decode_audio_file(path: str | Path) -> tuple[np.ndarray, int]:
    """Read and decode an audio file from disk.

    Raises:
        AudioFormatError: If the file cannot be read or decoded.
    """
    path = Path(path)
    try:
        audio_bytes = path.read_bytes()
    except OSError as exc:
        raise AudioFormatError(f"Could not read '{path}': {exc}") from exc
    return decode_audio(audio_bytes)


def decode_audio(audio_bytes: bytes) -> tuple[np.ndarray, int]:
    """Decode audio bytes to numpy float32 mono array.

    Supports WAV, FLAC, OGG, and other formats via libsndfile.
    Multi-channel audio is mixed down by averaging channels.

    Args:
        audio_bytes: Audio file bytes.

    Returns:
        Tuple (float32 mono array, sample rate in Hz).

    Raises:
        AudioFormatError: If the format is unsupported or bytes are invalid.
    """
    if not audio_bytes:
        raise AudioFormatError("Empty audio (0 bytes)")

    try:
        data, sample_rate = sf.read(io.BytesIO(audio_bytes), dtype="float32")
    except Exception:
        # Fallback to wave stdlib (plain WAV PCM without complex headers)
        try:
            data, sample_rate = _decode_wav_stdlib(audio_bytes)
        except AudioFormatError:
            raise
        except Exception as wav_err:
            raise AudioFormatError(f"Could not decode audio: {wav_err}") from wav_err

    if data.ndim > 1:
        data = np.mean(data, axis=1)

    data = np.clip(data.astype(np.float32), -1.0, 1.0)

    logger.debug(
        "audio_decoded",
        samples=len(data),
        sample_rate=sample_rate,
        duration_s=round(len(data) / sample_rate, 3) if sample_rate else 0.0,
    )

    return data, int(sample_rate)


def _decode_wav_stdlib(audio_bytes: bytes) -> tuple[np.ndarray, int]:
    """Decode WAV PCM using wave stdlib as fallback.

    Raises:
        AudioFormatError: If the WAV is invalid or uses an unsupported sample width.
    """
    try:
        with wave.open(io.BytesIO(audio_bytes), "rb") as wf:
            n_channels = wf.getnchannels()
            sampwidth = wf.getsampwidth()
            sample_rate = wf.getframerate()
            n_frames = wf.getnframes()
            raw_data = wf.readframes(n_frames)
    except (wave.Error, EOFError) as err:
        raise AudioFormatError(f"Invalid WAV file: {err}") from err

    if sampwidth == 2:
        data = np.frombuffer(raw_data, dtype=np.int16).astype(np.float32) / PCM_INT16_SCALE
    elif sampwidth == 1:
        data = np.frombuffer(raw_data, dtype=np.uint8).astype(np.float32) / PCM_UINT8_SCALE - 1.0
    else:
        raise AudioFormatError(f"Sample width {sampwidth} bytes not supported (expected 1 or 2)")

    if n_channels > 1:
        data = data.reshape(-1, n_channels)
        data = np.mean(data, axis=1)

    return data, sample_rate
