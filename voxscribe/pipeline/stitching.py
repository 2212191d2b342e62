"""ChunkStitcher -- merges per-window results into one transcript.

Window texts are joined with a single space in window order and token
sequences are concatenated. Words repeated across the overlap of two
consecutive windows are kept as-is unless boundary reconciliation is
requested.

Boundary reconciliation compares words, not tokens:
    1. Normalize the tail of the text accumulated so far and the head of
       the next window's text (lowercase, punctuation stripped).
    2. Find the longest run, up to ``max_overlap_words``, that ends the
       tail and starts the head.
    3. Drop that run from the head. Token streams are left untouched.
"""

from __future__ import annotations

import string
from typing import TYPE_CHECKING

from voxscribe._types import EMPTY_TRANSCRIPTION, TranscriptionResult
from voxscribe.exceptions import ConfigError
from voxscribe.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("pipeline.stitching")

_DEFAULT_MAX_OVERLAP_WORDS = 12
_PUNCTUATION = str.maketrans("", "", string.punctuation + "¿¡…“”‘’")


def _normalize_word(word: str) -> str:
    return word.translate(_PUNCTUATION).lower()


def boundary_overlap(previous: Sequence[str], following: Sequence[str], max_words: int) -> int:
    """Length of the longest word run ending *previous* and starting *following*.

    Comparison ignores case and punctuation. Runs of words that are pure
    punctuation never match.
    """
    limit = min(max_words, len(previous), len(following))
    prev_norm = [_normalize_word(w) for w in previous[len(previous) - limit :]]
    next_norm = [_normalize_word(w) for w in following[:limit]]

    for size in range(limit, 0, -1):
        tail = prev_norm[limit - size :]
        head = next_norm[:size]
        if tail == head and all(tail):
            return size
    return 0


class ChunkStitcher:
    """Joins per-window TranscriptionResults.

    Args:
        reconcile_boundaries: Drop words duplicated across window overlaps.
        max_overlap_words: Longest duplicated run considered when
            reconciling.

    Raises:
        ConfigError: If ``max_overlap_words`` is not positive.
    """

    __slots__ = ("_max_overlap_words", "_reconcile_boundaries")

    def __init__(
        self,
        reconcile_boundaries: bool = False,
        max_overlap_words: int = _DEFAULT_MAX_OVERLAP_WORDS,
    ) -> None:
        if max_overlap_words <= 0:
            msg = f"max_overlap_words must be > 0, got {max_overlap_words}"
            raise ConfigError(msg)
        self._reconcile_boundaries = reconcile_boundaries
        self._max_overlap_words = max_overlap_words

    @property
    def reconcile_boundaries(self) -> bool:
        return self._reconcile_boundaries

    def stitch(
        self,
        results: Sequence[TranscriptionResult],
        failed_windows: Sequence[int] = (),
    ) -> TranscriptionResult:
        """Merge window results, in window order, into the final transcript.

        An empty input yields an empty transcript; a single window's text is
        returned verbatim. With several windows each text is stripped and
        windows left empty add no separator.
        """
        failed = tuple(failed_windows)
        if not results:
            if failed:
                return TranscriptionResult(text="", failed_windows=failed)
            return EMPTY_TRANSCRIPTION

        if len(results) == 1 and not failed:
            only = results[0]
            return TranscriptionResult(text=only.text, tokens=only.tokens)

        words: list[str] = []
        pieces: list[str] = []
        tokens: list[int] = []
        dropped = 0

        for result in results:
            tokens.extend(result.tokens)
            text = result.text.strip()
            if not text:
                continue

            if self._reconcile_boundaries and words:
                head = text.split()
                overlap = boundary_overlap(words, head, self._max_overlap_words)
                if overlap:
                    dropped += overlap
                    head = head[overlap:]
                    words.extend(head)
                    if head:
                        pieces.append(" ".join(head))
                    continue
                words.extend(head)
            elif self._reconcile_boundaries:
                words.extend(text.split())

            pieces.append(text)

        if dropped:
            logger.debug("boundary_words_dropped", count=dropped, windows=len(results))

        return TranscriptionResult(
            text=" ".join(pieces),
            tokens=tuple(tokens),
            failed_windows=failed,
        )
