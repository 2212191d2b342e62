"""PromptBuilder — the decoder's initial token sequence for one window.

Layout::

    <s> [INST] [BEGIN_AUDIO] [AUDIO] x N [/INST] lang:<code> [TRANSCRIBE]

``N`` must equal the number of embeddings the encoder/projector emits for the
window's features; it is recomputed per window from the sample length the
features represent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from voxscribe._types import PromptSequence
from voxscribe.exceptions import ConfigError

if TYPE_CHECKING:
    from voxscribe._types import AcousticFeatures
    from voxscribe.config.model_config import ModelConfig


def placeholder_count(num_samples: int, samples_per_audio_token: int) -> int:
    """Audio embeddings produced for *num_samples* samples of (padded) audio.

    Raises:
        ConfigError: If ``samples_per_audio_token`` is not positive.
    """
    if samples_per_audio_token <= 0:
        msg = f"samples_per_audio_token must be > 0, got {samples_per_audio_token}"
        raise ConfigError(msg)
    return -(-num_samples // samples_per_audio_token)


class PromptBuilder:
    """Builds transcription prompts from an immutable model configuration.

    The placeholder token id and the language tag are resolved once at
    construction, so every window of a run uses identical values.

    Args:
        config: Model configuration (token ids, encoder geometry).
        language: Language code of the ``lang:`` tag (default "en").

    Raises:
        ConfigError: If the language has no configured token ids.
    """

    __slots__ = (
        "_hop_length",
        "_language",
        "_language_tokens",
        "_placeholder",
        "_prefix",
        "_samples_per_token",
        "_suffix",
    )

    def __init__(self, config: ModelConfig, language: str = "en") -> None:
        special = config.special_tokens
        self._placeholder = config.audio_token_id
        self._language = language
        self._language_tokens = config.language_tag_tokens(language)
        self._prefix = (special.bos, special.inst_open, special.begin_audio)
        self._suffix = (special.inst_close, *self._language_tokens, special.transcribe)
        self._samples_per_token = config.samples_per_audio_token
        self._hop_length = config.hop_length

    @property
    def placeholder_token_id(self) -> int:
        return self._placeholder

    @property
    def language(self) -> str:
        return self._language

    def expected_placeholders(self, features: AcousticFeatures) -> int:
        """Placeholder count for the sample length represented by *features*."""
        return placeholder_count(features.time_frames * self._hop_length, self._samples_per_token)

    def build(self, num_placeholders: int) -> PromptSequence:
        """Flat prompt with *num_placeholders* audio placeholder tokens.

        Raises:
            ConfigError: If ``num_placeholders <= 0``.
        """
        if num_placeholders <= 0:
            msg = f"placeholder count must be > 0, got {num_placeholders}"
            raise ConfigError(msg)

        start = len(self._prefix)
        token_ids = (
            *self._prefix,
            *([self._placeholder] * num_placeholders),
            *self._suffix,
        )
        return PromptSequence(
            token_ids=token_ids,
            placeholder_token_id=self._placeholder,
            placeholder_positions=tuple(range(start, start + num_placeholders)),
        )

    def build_for(self, features: AcousticFeatures) -> PromptSequence:
        """Prompt sized for one window's features."""
        return self.build(self.expected_placeholders(features))
