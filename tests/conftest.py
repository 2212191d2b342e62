"""Shared fixtures for all tests."""

from __future__ import annotations

import io
import os
import sys
import wave
from collections.abc import Iterator
from pathlib import Path

# Ensure repo root is on sys.path so tests can import the `voxscribe` package
# when running pytest from the repository root without an editable install.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import numpy as np  # noqa: E402
import pytest  # noqa: E402

from voxscribe.config.model_config import ModelConfig  # noqa: E402
from voxscribe.config.settings import get_settings  # noqa: E402
from tests.helpers import (  # noqa: E402
    CAPACITY_SAMPLES,
    FakeTokenizer,
    ScriptedEngine,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from VOXSCRIBE_* variables and the cached settings."""
    for name in list(os.environ):
        if name.startswith("VOXSCRIBE_") and not name.startswith("VOXSCRIBE_LOG_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def model_config() -> ModelConfig:
    """Default Voxtral model configuration (1280 samples per audio token)."""
    return ModelConfig()


@pytest.fixture
def engine() -> ScriptedEngine:
    return ScriptedEngine()


@pytest.fixture
def tokenizer() -> FakeTokenizer:
    return FakeTokenizer()


@pytest.fixture
def capacity_samples() -> int:
    return CAPACITY_SAMPLES


@pytest.fixture
def sample_wav_bytes() -> bytes:
    """1 second of PCM 16-bit, 16kHz, mono audio (440Hz sine tone)."""
    sample_rate = 16000
    t = np.arange(sample_rate, dtype=np.float64) / sample_rate
    samples = (0.5 * 32767 * np.sin(2 * np.pi * 440.0 * t)).astype("<i2")

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(samples.tobytes())
    return buf.getvalue()
