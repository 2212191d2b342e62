"""Shared test helpers for pipeline tests.

Usage:
    from tests.helpers import (
        CAPACITY_SAMPLES,
        CHUNK_SAMPLES,
        FakeTokenizer,
        ScriptedEngine,
        make_sine,
        small_transcriber_config,
    )
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from voxscribe._types import EngineVariant, WindowErrorPolicy
from voxscribe.engines.interface import ComputeEngine
from voxscribe.pipeline.kv_cache import KVCache
from voxscribe.pipeline.transcriber import TranscriberConfig

SAMPLE_RATE = 16000
# 1s windows padded to a 2s encoder capacity: 200 frames -> 25 audio tokens.
CHUNK_SAMPLES = 16000
CAPACITY_SAMPLES = 32000
PLACEHOLDERS_PER_WINDOW = CAPACITY_SAMPLES // 1280

EOS = 2
HEAD_DIM = 4


def make_sine(
    num_samples: int,
    sample_rate: int = SAMPLE_RATE,
    frequency: float = 440.0,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Float32 sine tone with *num_samples* samples."""
    t = np.arange(num_samples, dtype=np.float64) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def small_transcriber_config(**overrides: object) -> TranscriberConfig:
    """TranscriberConfig with 1s windows and a 2s encoder capacity."""
    params: dict[str, object] = {
        "chunk_samples": CHUNK_SAMPLES,
        "encoder_capacity_samples": CAPACITY_SAMPLES,
        "overlap": 0.10,
        "max_new_tokens": 16,
        "error_policy": WindowErrorPolicy.ABORT,
    }
    params.update(overrides)
    return TranscriberConfig(**params)  # type: ignore[arg-type]


class ScriptedEngine(ComputeEngine):
    """Deterministic numpy engine with scripted next-token choices.

    Geometry mirrors Voxtral at toy scale: ``encode`` halves the frame count
    (conv stride 2) and ``project`` groups four encoder frames into one
    audio embedding, so 1280 samples map to one embedding.

    Args:
        scripts: Token ids to emit for successive windows (cycled). After a
            script is exhausted the engine emits ``after_script``.
        after_script: Token emitted once a script runs out (EOS by default).
        hidden_size: Decoder embedding width.
        num_layers: Decoder layers written to the KV cache.
        vocab_size: Logits width.
        embedding_shortfall: Audio embeddings to drop from ``project`` output.
        encode_failures: Exceptions raised by the n-th ``encode`` call (0-based).
    """

    def __init__(
        self,
        scripts: Sequence[Sequence[int]] = ((10, 11, 12),),
        after_script: int = EOS,
        hidden_size: int = 8,
        num_layers: int = 2,
        vocab_size: int = 64,
        embedding_shortfall: int = 0,
        encode_failures: dict[int, Exception] | None = None,
    ) -> None:
        self._scripts = [list(s) for s in scripts]
        self._after_script = after_script
        self._hidden_size = hidden_size
        self._num_layers = num_layers
        self._vocab_size = vocab_size
        self._embedding_shortfall = embedding_shortfall
        self._encode_failures = dict(encode_failures or {})

        self.calls: list[str] = []
        self.prefill_lengths: list[int] = []
        self.decode_inputs: list[int] = []
        self.encode_count = 0
        self.closed = False
        self._window = -1
        self._step = 0

    @property
    def variant(self) -> EngineVariant:
        return EngineVariant.NATIVE

    @property
    def num_layers(self) -> int:
        return self._num_layers

    @property
    def hidden_size(self) -> int:
        return self._hidden_size

    def encode(self, features: np.ndarray) -> np.ndarray:
        self.calls.append("encode")
        index = self.encode_count
        self.encode_count += 1
        if index in self._encode_failures:
            raise self._encode_failures[index]

        frames = features[0].T  # [time, mel]
        usable = frames.shape[0] - frames.shape[0] % 2
        pooled = frames[:usable].reshape(usable // 2, 2, -1).mean(axis=1)
        return pooled[:, :4].astype(np.float32)

    def project(self, embeddings: np.ndarray) -> np.ndarray:
        self.calls.append("project")
        usable = embeddings.shape[0] - embeddings.shape[0] % 4
        grouped = embeddings[:usable].reshape(usable // 4, -1).mean(axis=1, keepdims=True)
        out = np.repeat(grouped, self._hidden_size, axis=1).astype(np.float32)
        if self._embedding_shortfall:
            out = out[: out.shape[0] - self._embedding_shortfall]
        return out

    def embed_tokens(self, token_ids: Sequence[int]) -> np.ndarray:
        self.calls.append("embed_tokens")
        ids = np.asarray(token_ids, dtype=np.float32)[:, None]
        return np.repeat(ids / 100.0, self._hidden_size, axis=1)

    def prefill(self, fused_embeddings: np.ndarray, cache: KVCache) -> tuple[np.ndarray, KVCache]:
        self.calls.append("prefill")
        self.prefill_lengths.append(int(fused_embeddings.shape[0]))
        self._window += 1
        self._step = 0
        block = np.asarray(fused_embeddings[None, :, :HEAD_DIM], dtype=np.float32)
        for layer in range(self._num_layers):
            cache.append(layer, block, block)
        return self._next_logits(), cache

    def decode_step(self, token_id: int, cache: KVCache) -> tuple[np.ndarray, KVCache]:
        self.calls.append("decode_step")
        self.decode_inputs.append(token_id)
        block = np.full((1, 1, HEAD_DIM), token_id / 100.0, dtype=np.float32)
        for layer in range(self._num_layers):
            cache.append(layer, block, block)
        return self._next_logits(), cache

    def close(self) -> None:
        self.closed = True

    def _next_logits(self) -> np.ndarray:
        script = self._scripts[self._window % len(self._scripts)]
        token = script[self._step] if self._step < len(script) else self._after_script
        self._step += 1
        logits = np.zeros(self._vocab_size, dtype=np.float32)
        logits[token] = 10.0
        return logits


class FakeTokenizer:
    """Maps token ids to ``w<id>`` words joined by spaces."""

    def __init__(self, vocab: dict[int, str] | None = None) -> None:
        self._vocab = vocab or {}

    def decode(self, token_ids: Sequence[int]) -> str:
        return " ".join(self._vocab.get(int(t), f"w{int(t)}") for t in token_ids)
