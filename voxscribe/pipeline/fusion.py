"""Fusion — splice projected audio embeddings into the prompt embeddings.

A count mismatch between reserved placeholders and produced embeddings is a
configuration/version error and aborts the window. Nothing is truncated or
padded to make the shapes fit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from voxscribe._types import FusedEmbeddings
from voxscribe.exceptions import ShapeError, ShapeMismatchError

if TYPE_CHECKING:
    from voxscribe._types import PromptSequence


def fuse_embeddings(
    prompt: PromptSequence,
    text_embeddings: np.ndarray,
    audio_embeddings: np.ndarray,
) -> FusedEmbeddings:
    """Replace placeholder rows of *text_embeddings* with *audio_embeddings*.

    Args:
        prompt: Prompt whose ``placeholder_positions`` mark the audio slots.
        text_embeddings: Embedded prompt tokens ``[len(prompt), hidden]``.
        audio_embeddings: Projector output ``[N', hidden]``.

    Returns:
        New ``[len(prompt), hidden]`` embeddings; inputs are not modified.

    Raises:
        ShapeMismatchError: If ``N'`` differs from the placeholder count.
        ShapeError: If ranks, prompt length or hidden sizes disagree.
    """
    text_embeddings = np.asarray(text_embeddings)
    audio_embeddings = np.asarray(audio_embeddings)

    if text_embeddings.ndim != 2 or audio_embeddings.ndim != 2:
        msg = (
            "embeddings must be 2-D [positions, hidden], got "
            f"text {text_embeddings.shape} and audio {audio_embeddings.shape}"
        )
        raise ShapeError(msg)

    if text_embeddings.shape[0] != len(prompt):
        msg = (
            f"text embeddings cover {text_embeddings.shape[0]} positions, "
            f"prompt has {len(prompt)} tokens"
        )
        raise ShapeError(msg)

    expected = prompt.num_placeholders
    actual = int(audio_embeddings.shape[0])
    if actual != expected:
        raise ShapeMismatchError(expected=expected, actual=actual)

    if audio_embeddings.shape[1] != text_embeddings.shape[1]:
        msg = (
            f"audio hidden size {audio_embeddings.shape[1]} does not match "
            f"decoder hidden size {text_embeddings.shape[1]}"
        )
        raise ShapeError(msg)

    fused = text_embeddings.copy()
    fused[list(prompt.placeholder_positions)] = audio_embeddings.astype(fused.dtype, copy=False)
    return FusedEmbeddings(values=fused)
