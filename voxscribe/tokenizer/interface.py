"""Tokenizer contract used by the GenerationLoop."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class Tokenizer(Protocol):
    """Anything that turns generated token ids into text.

    ``decode`` is total: it never fails on ids inside the vocabulary.
    """

    def decode(self, token_ids: Sequence[int]) -> str: ...
