"""Centralized audio format constants for voxscribe.

Single source of truth for the model sample rate, the log-mel front end
parameters, and the window sizes shared by settings, pipeline and CLI.
"""

from __future__ import annotations

# --- Sample rate ---
# The encoder only accepts 16kHz mono PCM.
STT_SAMPLE_RATE: int = 16000

# --- PCM 16-bit format ---
# int16 / 32768.0 maps to [-1.0, ~0.99997].
PCM_INT16_SCALE: float = 32768.0
PCM_UINT8_SCALE: float = 128.0

# --- Log-mel front end (Whisper-style) ---
DEFAULT_N_MELS: int = 128
DEFAULT_FFT_SIZE: int = 400
DEFAULT_HOP_LENGTH: int = 160
LOG_MEL_FLOOR: float = 1e-10
# Dynamic range kept below the per-window maximum, in log10 units.
LOG_MEL_DYNAMIC_RANGE: float = 8.0

# --- Encoder geometry ---
# Conv stem stride (2) times projector frame stacking (4).
DEFAULT_ENCODER_CONV_STRIDE: int = 2
DEFAULT_PROJECTOR_DOWNSAMPLE: int = 4

# Theoretical encoder window (30s) used for zero-padding features.
DEFAULT_ENCODER_CAPACITY_S: float = 30.0
# Practical orchestration window (15s); must not exceed the capacity.
DEFAULT_CHUNK_S: float = 15.0
DEFAULT_CHUNK_OVERLAP: float = 0.10
