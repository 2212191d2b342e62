"""Abstract interface for tensor compute engines.

The orchestration core talks to the neural network exclusively through
this interface. Array arguments and results crossing it are numpy arrays;
the only engine-native objects are the buffers an engine stores in the
KVCache it is handed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from voxscribe.exceptions import ComputeError, VoxscribeError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import numpy as np

    from voxscribe._types import EngineVariant
    from voxscribe.pipeline.kv_cache import KVCache

_P = ParamSpec("_P")
_R = TypeVar("_R")


def guarded_call(
    operation: str, fn: Callable[_P, _R], *args: _P.args, **kwargs: _P.kwargs
) -> _R:
    """Invoke an engine method, surfacing foreign failures as ``ComputeError``.

    voxscribe errors pass through untouched; anything else is wrapped with
    its message kept verbatim and the original exception chained.
    """
    try:
        return fn(*args, **kwargs)
    except VoxscribeError:
        raise
    except Exception as exc:
        raise ComputeError(str(exc) or type(exc).__name__, operation=operation) from exc


class ComputeEngine(ABC):
    """Contract every encoder/projector/decoder backend must implement.

    All methods are synchronous, blocking and fallible. Engines raise
    ``ComputeError`` for failures of their own; the Transcriber wraps any
    other exception escaping an engine into ``ComputeError``.
    """

    @property
    @abstractmethod
    def variant(self) -> EngineVariant:
        """Native-precision or accelerated execution."""
        ...

    @property
    @abstractmethod
    def num_layers(self) -> int:
        """Decoder layers, i.e. KV cache layers to allocate."""
        ...

    @property
    @abstractmethod
    def hidden_size(self) -> int:
        """Decoder embedding width."""
        ...

    @abstractmethod
    def encode(self, features: np.ndarray) -> np.ndarray:
        """Run the audio encoder.

        Args:
            features: ``[1, mel_bins, time_frames]`` log-mel features.

        Returns:
            Encoder states ``[frames, encoder_hidden]``.
        """
        ...

    @abstractmethod
    def project(self, embeddings: np.ndarray) -> np.ndarray:
        """Map encoder states into the decoder embedding space.

        Returns:
            Audio embeddings ``[N', hidden_size]``.
        """
        ...

    @abstractmethod
    def embed_tokens(self, token_ids: Sequence[int]) -> np.ndarray:
        """Decoder input embeddings ``[len(token_ids), hidden_size]``."""
        ...

    @abstractmethod
    def prefill(self, fused_embeddings: np.ndarray, cache: KVCache) -> tuple[np.ndarray, KVCache]:
        """Process the whole prompt in one pass.

        Args:
            fused_embeddings: ``[seq_len, hidden_size]`` decoder inputs.
            cache: Empty cache; the engine appends ``seq_len`` positions to
                every layer.

        Returns:
            Next-token logits ``[vocab]`` and the populated cache.
        """
        ...

    @abstractmethod
    def decode_step(self, token_id: int, cache: KVCache) -> tuple[np.ndarray, KVCache]:
        """Process one new token against the cached context.

        The engine appends exactly one position to every cache layer and
        never re-processes earlier positions.

        Returns:
            Next-token logits ``[vocab]`` and the grown cache.
        """
        ...

    def close(self) -> None:
        """Release model memory. The engine must not be used afterwards."""
