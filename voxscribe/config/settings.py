"""Centralized runtime configuration via pydantic-settings.

All ``VOXSCRIBE_*`` environment variables are read, validated, and exposed here.
Logging env vars (``VOXSCRIBE_LOG_FORMAT``, ``VOXSCRIBE_LOG_LEVEL``) are
intentionally excluded — they stay in ``voxscribe.logging`` for bootstrap-safety.

Usage::

    from voxscribe.config.settings import get_settings

    settings = get_settings()
    print(settings.transcription.chunk_seconds)  # float, validated
    print(settings.model.models_path)            # Path, expanded

``.env`` files in the working directory are loaded automatically.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voxscribe._audio_constants import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_S,
    DEFAULT_ENCODER_CAPACITY_S,
    STT_SAMPLE_RATE,
)
from voxscribe._types import WindowErrorPolicy


class TranscriptionSettings(BaseSettings):
    """Windowing, sampling and error-policy defaults for a transcription run."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    chunk_seconds: float = Field(
        default=DEFAULT_CHUNK_S, gt=0, le=600, validation_alias="VOXSCRIBE_CHUNK_SECONDS"
    )
    encoder_capacity_seconds: float = Field(
        default=DEFAULT_ENCODER_CAPACITY_S,
        gt=0,
        le=600,
        validation_alias="VOXSCRIBE_ENCODER_CAPACITY_SECONDS",
    )
    overlap: float = Field(
        default=DEFAULT_CHUNK_OVERLAP, ge=0.0, lt=1.0, validation_alias="VOXSCRIBE_CHUNK_OVERLAP"
    )
    language: str = Field(default="en", validation_alias="VOXSCRIBE_LANGUAGE")
    max_new_tokens: int = Field(
        default=1000, ge=1, le=100_000, validation_alias="VOXSCRIBE_MAX_NEW_TOKENS"
    )
    temperature: float = Field(default=0.0, ge=0.0, le=5.0, validation_alias="VOXSCRIBE_TEMPERATURE")
    top_p: float | None = Field(default=None, gt=0.0, le=1.0, validation_alias="VOXSCRIBE_TOP_P")
    seed: int | None = Field(default=None, ge=0, validation_alias="VOXSCRIBE_SEED")
    on_window_error: str = Field(default="abort", validation_alias="VOXSCRIBE_ON_WINDOW_ERROR")
    reconcile_boundaries: bool = Field(
        default=False, validation_alias="VOXSCRIBE_RECONCILE_BOUNDARIES"
    )

    @model_validator(mode="after")
    def _chunk_fits_encoder(self) -> TranscriptionSettings:
        if self.chunk_seconds > self.encoder_capacity_seconds:
            msg = "chunk_seconds must be <= encoder_capacity_seconds"
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def _validate_error_policy(self) -> TranscriptionSettings:
        normalized = self.on_window_error.lower()
        valid = {p.value for p in WindowErrorPolicy}
        if normalized not in valid:
            msg = f"on_window_error must be one of {valid}, got {self.on_window_error!r}"
            raise ValueError(msg)
        object.__setattr__(self, "on_window_error", normalized)
        return self

    @property
    def chunk_samples(self) -> int:
        return int(round(self.chunk_seconds * STT_SAMPLE_RATE))

    @property
    def encoder_capacity_samples(self) -> int:
        return int(round(self.encoder_capacity_seconds * STT_SAMPLE_RATE))

    @property
    def window_error_policy(self) -> WindowErrorPolicy:
        return WindowErrorPolicy(self.on_window_error)


class EngineSettings(BaseSettings):
    """Compute engine selection."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    device: str = Field(default="auto", validation_alias="VOXSCRIBE_DEVICE")
    dtype: str | None = Field(default=None, validation_alias="VOXSCRIBE_DTYPE")

    @model_validator(mode="after")
    def _validate_dtype(self) -> EngineSettings:
        if self.dtype is not None and self.dtype not in {"float32", "float16", "bfloat16"}:
            msg = f"dtype must be float32, float16 or bfloat16, got {self.dtype!r}"
            raise ValueError(msg)
        return self


class ModelSettings(BaseSettings):
    """Where model artifacts come from and where they are cached."""

    model_config = SettingsConfigDict(
        extra="ignore", populate_by_name=True, protected_namespaces=()
    )

    model_id: str = Field(
        default="mistralai/Voxtral-Mini-3B-2507", validation_alias="VOXSCRIBE_MODEL_ID"
    )
    revision: str = Field(default="main", validation_alias="VOXSCRIBE_MODEL_REVISION")
    models_dir: str = Field(default="~/.voxscribe/models", validation_alias="VOXSCRIBE_MODELS_DIR")
    mel_filters_path: str | None = Field(default=None, validation_alias="VOXSCRIBE_MEL_FILTERS")

    @property
    def models_path(self) -> Path:
        """Expanded models directory as a Path object."""
        return Path(self.models_dir).expanduser()


class VoxscribeSettings(BaseSettings):
    """Root settings — aggregates all subsystem settings.

    Loads ``.env`` from the current directory when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    transcription: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    model: ModelSettings = Field(default_factory=ModelSettings)


@lru_cache(maxsize=1)
def get_settings() -> VoxscribeSettings:
    """Return the singleton ``VoxscribeSettings`` instance.

    The result is cached — subsequent calls return the same object.
    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return VoxscribeSettings()
