"""ChunkScheduler — splits long audio into overlapping encoder windows.

Windows are ``[0, C), [step, step + C), ...`` with ``step = C - round(C * r)``
until a window reaches the end of the audio. The last window is clipped to
the audio length and flagged ``is_last``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxscribe._audio_constants import DEFAULT_CHUNK_OVERLAP
from voxscribe._types import AudioWindow
from voxscribe.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator


class ChunkScheduler:
    """Window boundaries for audio of arbitrary length.

    Args:
        chunk_samples: Window length ``C`` in samples (must be > 0).
        overlap: Fraction of ``C`` shared by consecutive windows (``0 <= r < 1``).

    Raises:
        ConfigError: If ``chunk_samples`` or ``overlap`` is out of range.
    """

    __slots__ = ("_chunk_samples", "_overlap", "_step")

    def __init__(self, chunk_samples: int, overlap: float = DEFAULT_CHUNK_OVERLAP) -> None:
        if chunk_samples <= 0:
            msg = f"chunk_samples must be > 0, got {chunk_samples}"
            raise ConfigError(msg)
        if not 0.0 <= overlap < 1.0:
            msg = f"overlap must be in [0, 1), got {overlap}"
            raise ConfigError(msg)

        self._chunk_samples = chunk_samples
        self._overlap = overlap
        step = chunk_samples - round(chunk_samples * overlap)
        self._step = step if step > 0 else chunk_samples

    @property
    def chunk_samples(self) -> int:
        return self._chunk_samples

    @property
    def overlap(self) -> float:
        return self._overlap

    @property
    def step(self) -> int:
        """Distance in samples between consecutive window starts."""
        return self._step

    def num_windows(self, total_samples: int) -> int:
        """Number of windows :meth:`windows` yields for *total_samples*."""
        if total_samples <= 0:
            return 0
        if total_samples <= self._chunk_samples:
            return 1
        remaining = total_samples - self._chunk_samples
        return 1 + -(-remaining // self._step)

    def windows(self, total_samples: int) -> Iterator[AudioWindow]:
        """Yield the windows covering ``[0, total_samples)`` in order.

        Zero samples yield nothing; ``total_samples <= C`` yields a single
        window over the whole audio.
        """
        count = self.num_windows(total_samples)
        for index in range(count):
            start = index * self._step
            end = min(start + self._chunk_samples, total_samples)
            yield AudioWindow(
                index=index,
                start_sample=start,
                end_sample=end,
                is_last=index == count - 1,
            )

    def plan(self, total_samples: int) -> list[AudioWindow]:
        """All windows for *total_samples* as a list."""
        return list(self.windows(total_samples))
