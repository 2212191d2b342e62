"""Parsing and validation for the model's config.json.

The model configuration is read once per run and treated as immutable:
every window of a run sees the same token ids and encoder geometry.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from voxscribe._audio_constants import (
    DEFAULT_ENCODER_CONV_STRIDE,
    DEFAULT_FFT_SIZE,
    DEFAULT_HOP_LENGTH,
    DEFAULT_N_MELS,
    DEFAULT_PROJECTOR_DOWNSAMPLE,
    STT_SAMPLE_RATE,
)
from voxscribe.exceptions import ConfigError, ModelConfigParseError

# Canonical filename for the model configuration inside a model directory.
CONFIG_FILENAME = "config.json"

# ``lang:<code>`` spelled in Tekken token ids. Only English ships built in;
# a config.json may add others under ``language_tokens``.
DEFAULT_LANGUAGE_TOKENS: dict[str, tuple[int, ...]] = {
    "en": (9909, 1058, 1262),
}


class AudioEncoderConfig(BaseModel):
    """Audio tower section (``audio_config``)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    vocab_size: int = 51866
    hidden_size: int = Field(default=1280, gt=0)
    num_hidden_layers: int = Field(default=32, gt=0)
    num_attention_heads: int = 20
    num_key_value_heads: int = 20
    intermediate_size: int = 5120
    dropout: float = 0.0
    attention_dropout: float = 0.0
    activation_dropout: float = 0.0
    activation_function: str = "gelu"
    max_source_positions: int = Field(default=1500, gt=0)
    layerdrop: float = 0.0
    initializer_range: float = 0.02
    scale_embedding: bool = False
    num_mel_bins: int = Field(default=DEFAULT_N_MELS, gt=0)
    head_dim: int = 64


class TextDecoderConfig(BaseModel):
    """Causal decoder section (``text_config``)."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    vocab_size: int = Field(default=131072, gt=0)
    hidden_size: int = Field(default=3072, gt=0)
    intermediate_size: int = 8192
    num_hidden_layers: int = Field(default=30, gt=0)
    num_attention_heads: int = 32
    num_key_value_heads: int = 8
    head_dim: int = 128
    max_position_embeddings: int = Field(default=131072, gt=0)


class SpecialTokens(BaseModel):
    """Control token ids of the transcription prompt template."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    bos: int = 1
    eos: int = 2
    inst_open: int = 3
    inst_close: int = 4
    begin_audio: int = 25
    transcribe: int = 34


class ModelConfig(BaseModel):
    """Immutable model configuration shared by every window of a run.

    ``audio_token_id`` is the placeholder id reserved in the prompt for each
    audio embedding. The encoder geometry (``hop_length``, conv stride and
    projector downsampling) determines how many samples each embedding
    covers.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, protected_namespaces=())

    audio_token_id: int = Field(default=24, ge=0)
    projector_hidden_act: str = "gelu"
    audio_config: AudioEncoderConfig = AudioEncoderConfig()
    text_config: TextDecoderConfig = TextDecoderConfig()
    special_tokens: SpecialTokens = SpecialTokens()
    language_tokens: dict[str, tuple[int, ...]] = Field(
        default_factory=lambda: dict(DEFAULT_LANGUAGE_TOKENS)
    )

    sample_rate: int = STT_SAMPLE_RATE
    n_fft: int = Field(default=DEFAULT_FFT_SIZE, gt=0)
    hop_length: int = Field(default=DEFAULT_HOP_LENGTH, gt=0)
    encoder_conv_stride: int = Field(default=DEFAULT_ENCODER_CONV_STRIDE, gt=0)
    projector_downsample: int = Field(default=DEFAULT_PROJECTOR_DOWNSAMPLE, gt=0)

    @field_validator("language_tokens", mode="after")
    @classmethod
    def _keep_builtin_languages(
        cls, value: dict[str, tuple[int, ...]]
    ) -> dict[str, tuple[int, ...]]:
        return {**DEFAULT_LANGUAGE_TOKENS, **{k.lower(): v for k, v in value.items()}}

    @model_validator(mode="after")
    def _placeholder_not_a_control_token(self) -> ModelConfig:
        controls = self.special_tokens.model_dump().values()
        if self.audio_token_id in controls:
            msg = f"audio_token_id {self.audio_token_id} collides with a control token"
            raise ValueError(msg)
        return self

    @property
    def samples_per_audio_token(self) -> int:
        """PCM samples covered by one projected audio embedding (1280 for Voxtral)."""
        return self.hop_length * self.encoder_conv_stride * self.projector_downsample

    @property
    def encoder_capacity_samples(self) -> int:
        """Theoretical encoder window in samples (``max_source_positions`` frames after the stem)."""
        return (
            self.audio_config.max_source_positions * self.encoder_conv_stride * self.hop_length
        )

    @property
    def num_mel_bins(self) -> int:
        return self.audio_config.num_mel_bins

    @property
    def max_context_length(self) -> int:
        return self.text_config.max_position_embeddings

    @property
    def num_decoder_layers(self) -> int:
        return self.text_config.num_hidden_layers

    def language_tag_tokens(self, language: str) -> tuple[int, ...]:
        """Token ids spelling ``lang:<language>``.

        Raises:
            ConfigError: If no token ids are configured for *language*.
        """
        tokens = self.language_tokens.get(language.lower())
        if not tokens:
            known = ", ".join(sorted(self.language_tokens)) or "none"
            msg = f"No prompt tokens configured for language '{language}' (known: {known})"
            raise ConfigError(msg)
        return tokens

    @classmethod
    def from_json_path(cls, path: str | Path) -> ModelConfig:
        """Load and validate a config.json file.

        Raises:
            ModelConfigParseError: If the file cannot be read or is not valid JSON.
            ConfigError: If values fail validation.
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ModelConfigParseError(str(path), str(exc)) from exc
        except json.JSONDecodeError as exc:
            raise ModelConfigParseError(str(path), f"invalid JSON: {exc}") from exc

        if not isinstance(raw, dict):
            raise ModelConfigParseError(str(path), "top-level value must be an object")

        return cls.from_dict(raw, source=str(path))

    @classmethod
    def from_dict(cls, data: dict[str, object], source: str = "<dict>") -> ModelConfig:
        """Validate a config mapping.

        Raises:
            ConfigError: If values fail validation.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
            msg = f"Model config '{source}' is invalid: {'; '.join(errors)}"
            raise ConfigError(msg) from exc
