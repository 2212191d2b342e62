"""KVCache — per-layer key/value arena for incremental decoding.

Each decoder layer owns one key buffer and one value buffer laid out as
``[..., positions, head_dim]``. Buffers grow along the position axis only,
doubling their capacity (capped at the decoder's maximum context) so that
per-token appends do not reallocate.

Buffers are allocated from the first block appended to a layer: torch
tensors get ``tensor.new_zeros`` (same device and dtype), anything else a
numpy array. The cache never converts between the two.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from voxscribe.exceptions import CacheOverflowError, ConfigError, ShapeError

_DEFAULT_INITIAL_CAPACITY = 256


def _new_buffer(like: Any, shape: tuple[int, ...]) -> Any:
    """Zeroed buffer of *shape* matching the array type, dtype and device of *like*."""
    new_zeros = getattr(like, "new_zeros", None)
    if callable(new_zeros):
        return new_zeros(shape)
    return np.zeros(shape, dtype=like.dtype)


class KVCache:
    """Key/value arena indexed by layer and position.

    Args:
        num_layers: Number of decoder layers.
        max_length: Decoder maximum context length in positions.
        initial_capacity: Positions allocated on a layer's first append
            (raised to the first block's size when smaller).

    Raises:
        ConfigError: If ``num_layers`` or ``max_length`` is not positive.
    """

    __slots__ = ("_capacity", "_initial_capacity", "_keys", "_lengths", "_max_length", "_values")

    def __init__(
        self,
        num_layers: int,
        max_length: int,
        initial_capacity: int = _DEFAULT_INITIAL_CAPACITY,
    ) -> None:
        if num_layers <= 0:
            msg = f"num_layers must be > 0, got {num_layers}"
            raise ConfigError(msg)
        if max_length <= 0:
            msg = f"max_length must be > 0, got {max_length}"
            raise ConfigError(msg)

        self._max_length = max_length
        self._initial_capacity = max(1, min(initial_capacity, max_length))
        self._keys: list[Any] = [None] * num_layers
        self._values: list[Any] = [None] * num_layers
        self._lengths: list[int] = [0] * num_layers
        self._capacity: list[int] = [0] * num_layers

    @property
    def num_layers(self) -> int:
        return len(self._lengths)

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def length(self) -> int:
        """Positions stored in every layer.

        Raises:
            ShapeError: If layers hold different numbers of positions
                (a forward pass was interrupted half-way).
        """
        first = self._lengths[0]
        if any(n != first for n in self._lengths):
            msg = f"KV cache layers out of sync: lengths {self._lengths}"
            raise ShapeError(msg)
        return first

    @property
    def remaining(self) -> int:
        """Positions that can still be appended before hitting ``max_length``."""
        return self._max_length - self.length

    def capacity(self, layer: int) -> int:
        """Allocated positions for *layer* (>= its length)."""
        return self._capacity[layer]

    def can_grow(self, positions: int = 1) -> bool:
        return self.length + positions <= self._max_length

    def append(self, layer: int, keys: Any, values: Any) -> None:
        """Append a block of positions to *layer*.

        Args:
            layer: Decoder layer index.
            keys: ``[..., n, head_dim]`` keys for ``n`` new positions.
            values: Values with the same shape as *keys*.

        Raises:
            ShapeError: If keys and values disagree, or the block's leading
                dims differ from what the layer already holds.
            CacheOverflowError: If the layer would exceed ``max_length``.
        """
        if tuple(keys.shape) != tuple(values.shape):
            msg = f"keys {tuple(keys.shape)} and values {tuple(values.shape)} differ"
            raise ShapeError(msg)
        if len(keys.shape) < 2:
            msg = f"KV blocks must be at least 2-D [..., positions, head_dim], got {tuple(keys.shape)}"
            raise ShapeError(msg)

        n_new = int(keys.shape[-2])
        start = self._lengths[layer]
        stop = start + n_new
        if stop > self._max_length:
            raise CacheOverflowError(requested=stop, max_length=self._max_length)

        self._reserve(layer, keys, values, stop)
        self._keys[layer][..., start:stop, :] = keys
        self._values[layer][..., start:stop, :] = values
        self._lengths[layer] = stop

    def layer(self, layer: int) -> tuple[Any, Any]:
        """Views of the filled part of *layer*'s key and value buffers.

        Raises:
            ShapeError: If nothing has been appended to *layer* yet.
        """
        keys = self._keys[layer]
        if keys is None:
            msg = f"KV cache layer {layer} is empty"
            raise ShapeError(msg)
        n = self._lengths[layer]
        return keys[..., :n, :], self._values[layer][..., :n, :]

    def _reserve(self, layer: int, keys: Any, values: Any, needed: int) -> None:
        current = self._keys[layer]
        block_lead = tuple(keys.shape[:-2])
        head_dim = int(keys.shape[-1])

        if current is not None:
            held_lead = tuple(current.shape[:-2])
            if held_lead != block_lead or int(current.shape[-1]) != head_dim:
                msg = (
                    f"KV block {tuple(keys.shape)} incompatible with layer {layer} "
                    f"buffer {tuple(current.shape)}"
                )
                raise ShapeError(msg)
            if needed <= self._capacity[layer]:
                return

        capacity = max(self._capacity[layer] * 2, self._initial_capacity, needed)
        capacity = min(capacity, self._max_length)
        shape = (*block_lead, capacity, head_dim)

        new_keys = _new_buffer(keys, shape)
        new_values = _new_buffer(values, shape)
        if current is not None:
            filled = self._lengths[layer]
            new_keys[..., :filled, :] = current[..., :filled, :]
            new_values[..., :filled, :] = self._values[layer][..., :filled, :]

        self._keys[layer] = new_keys
        self._values[layer] = new_values
        self._capacity[layer] = capacity
