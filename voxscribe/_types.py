"""Core types for voxscribe.

This module defines enums, dataclasses, and type aliases shared by the
transcription pipeline. Changes here affect the entire system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from voxscribe.pipeline.kv_cache import KVCache


class EngineVariant(Enum):
    """Compute engine flavour.

    - NATIVE: full precision on CPU, bit-stable across runs
    - ACCELERATED: reduced precision on an accelerator (CUDA)
    """

    NATIVE = "native"
    ACCELERATED = "accelerated"


class GenerationPhase(Enum):
    """State of a GenerationLoop invocation.

    Valid transitions:
        PREFILL -> DECODING (prompt consumed, cache seeded)
        DECODING -> DECODING (token emitted, no stop condition)
        DECODING -> DONE (stop condition reached)
        PREFILL | DECODING -> FAILED (shape, cache or engine error)
    """

    PREFILL = "prefill"
    DECODING = "decoding"
    DONE = "done"
    FAILED = "failed"


class StopReason(Enum):
    """Why a window's generation terminated."""

    EOS = "eos"
    MAX_NEW_TOKENS = "max_new_tokens"
    CACHE_FULL = "cache_full"


class WindowErrorPolicy(Enum):
    """What the Transcriber does when a window fails."""

    ABORT = "abort"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class AudioWindow:
    """A contiguous slice ``[start_sample, end_sample)`` of 16kHz mono PCM."""

    index: int
    start_sample: int
    end_sample: int
    is_last: bool

    @property
    def num_samples(self) -> int:
        return self.end_sample - self.start_sample

    def slice(self, audio: np.ndarray) -> np.ndarray:
        """Return the window's samples as a view of *audio*."""
        return audio[self.start_sample : self.end_sample]


@dataclass(frozen=True, slots=True)
class AcousticFeatures:
    """Log-mel features ``[1, mel_bins, time_frames]`` zero-padded to capacity.

    ``valid_frames`` counts the frames computed from real audio; frames after
    it are zero padding.
    """

    values: np.ndarray
    valid_frames: int

    @property
    def mel_bins(self) -> int:
        return int(self.values.shape[1])

    @property
    def time_frames(self) -> int:
        return int(self.values.shape[2])


@dataclass(frozen=True, slots=True)
class PromptSequence:
    """Decoder prompt token ids with the positions reserved for audio embeddings."""

    token_ids: tuple[int, ...]
    placeholder_token_id: int
    placeholder_positions: tuple[int, ...]

    @property
    def num_placeholders(self) -> int:
        return len(self.placeholder_positions)

    def __len__(self) -> int:
        return len(self.token_ids)


@dataclass(frozen=True, slots=True)
class FusedEmbeddings:
    """Decoder input embeddings ``[seq_len, hidden]`` with audio spliced in."""

    values: np.ndarray

    def __len__(self) -> int:
        return int(self.values.shape[0])


@dataclass(slots=True)
class GenerationState:
    """Mutable state owned by exactly one GenerationLoop invocation."""

    cache: KVCache
    tokens_generated: list[int] = field(default_factory=list)
    position_index: int = 0
    done: bool = False
    phase: GenerationPhase = GenerationPhase.PREFILL
    stop_reason: StopReason | None = None


@dataclass(frozen=True, slots=True)
class TranscriptionResult:
    """Transcript text and the token ids it was decoded from.

    Produced once per window by the GenerationLoop and merged into the final
    result by the ChunkStitcher.
    """

    text: str
    tokens: tuple[int, ...] = ()
    stop_reason: StopReason | None = None
    failed_windows: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, object]:
        """JSON-serializable representation."""
        data: dict[str, object] = {"text": self.text, "tokens": list(self.tokens)}
        if self.stop_reason is not None:
            data["stop_reason"] = self.stop_reason.value
        if self.failed_windows:
            data["failed_windows"] = list(self.failed_windows)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TranscriptionResult:
        stop_reason = data.get("stop_reason")
        failed = data.get("failed_windows") or []
        return cls(
            text=str(data.get("text", "")),
            tokens=tuple(int(t) for t in data.get("tokens", []) or []),  # type: ignore[union-attr]
            stop_reason=StopReason(stop_reason) if stop_reason is not None else None,
            failed_windows=tuple(int(i) for i in failed),  # type: ignore[union-attr]
        )


EMPTY_TRANSCRIPTION = TranscriptionResult(text="", tokens=())
