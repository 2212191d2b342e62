"""Sampler — next-token selection policy.

``temperature == 0`` is greedy argmax and bit-reproducible. Otherwise logits
are tempered, optionally restricted to the nucleus (top-p) and sampled with
an injected ``numpy.random.Generator``; there is no hidden global RNG.
"""

from __future__ import annotations

import numpy as np

from voxscribe.exceptions import ConfigError, ShapeError


class Sampler:
    """Picks one token id from a logits vector.

    Args:
        temperature: 0 for greedy decoding, > 0 to sample.
        top_p: Nucleus threshold in ``(0, 1]``; ``None`` disables it.
        rng: Random source for sampling mode. Required when
            ``temperature > 0``.

    Raises:
        ConfigError: On out-of-range parameters or a missing random source.
    """

    __slots__ = ("_rng", "_temperature", "_top_p")

    def __init__(
        self,
        temperature: float = 0.0,
        top_p: float | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        if temperature < 0:
            msg = f"temperature must be >= 0, got {temperature}"
            raise ConfigError(msg)
        if top_p is not None and not 0.0 < top_p <= 1.0:
            msg = f"top_p must be in (0, 1], got {top_p}"
            raise ConfigError(msg)
        if temperature > 0 and rng is None:
            msg = "sampling with temperature > 0 requires an explicit random generator"
            raise ConfigError(msg)

        self._temperature = temperature
        self._top_p = top_p
        self._rng = rng

    @classmethod
    def from_seed(
        cls,
        temperature: float = 0.0,
        top_p: float | None = None,
        seed: int | None = None,
    ) -> Sampler:
        """Sampler with its own ``default_rng(seed)``.

        ``seed=None`` draws fresh OS entropy, so sampling runs are only
        reproducible when a seed is given.
        """
        rng = np.random.default_rng(seed) if temperature > 0 else None
        return cls(temperature=temperature, top_p=top_p, rng=rng)

    @property
    def is_greedy(self) -> bool:
        return self._temperature == 0

    @property
    def temperature(self) -> float:
        return self._temperature

    @property
    def top_p(self) -> float | None:
        return self._top_p

    def __call__(self, logits: np.ndarray) -> int:
        return self.sample(logits)

    def sample(self, logits: np.ndarray) -> int:
        """Token id chosen from a 1-D logits vector (or its last row).

        Raises:
            ShapeError: If the logits are empty.
        """
        scores = np.asarray(logits, dtype=np.float64)
        if scores.ndim > 1:
            scores = scores.reshape(-1, scores.shape[-1])[-1]
        if scores.size == 0:
            msg = "cannot sample from empty logits"
            raise ShapeError(msg)

        if self.is_greedy:
            return int(np.argmax(scores))

        probs = _softmax(scores / self._temperature)
        candidates = np.arange(probs.size)

        if self._top_p is not None and self._top_p < 1.0:
            candidates, probs = _nucleus(probs, self._top_p)

        probs = probs / probs.sum()
        rng = self._rng
        if rng is None:
            msg = "sampling with temperature > 0 requires an explicit random generator"
            raise ConfigError(msg)
        return int(rng.choice(candidates, p=probs))


def _softmax(scores: np.ndarray) -> np.ndarray:
    shifted = scores - np.max(scores)
    exp = np.exp(shifted)
    return exp / exp.sum()


def _nucleus(probs: np.ndarray, top_p: float) -> tuple[np.ndarray, np.ndarray]:
    """Smallest descending-probability prefix whose mass reaches *top_p*."""
    order = np.argsort(-probs, kind="stable")
    sorted_probs = probs[order]
    cumulative = np.cumsum(sorted_probs)
    keep = int(np.searchsorted(cumulative, top_p, side="left")) + 1
    keep = min(keep, probs.size)
    return order[:keep], sorted_probs[:keep]
