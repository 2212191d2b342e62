"""Audio ingestion: decode files to mono float32 and bring them to 16kHz."""

from __future__ import annotations

from voxscribe.preprocessing.audio_io import decode_audio, decode_audio_file
from voxscribe.preprocessing.resample import ResampleStage

__all__ = ["ResampleStage", "decode_audio", "decode_audio_file"]
