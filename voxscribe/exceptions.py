"""Typed exceptions for voxscribe.

Hierarchy:
    VoxscribeError (base)
    +-- ConfigError
    |   +-- ModelConfigParseError
    +-- ModelError
    |   +-- ModelNotFoundError
    |   +-- ModelLoadError
    +-- AudioError
    |   +-- AudioFormatError
    +-- ShapeError
    |   +-- ShapeMismatchError
    +-- GenerationError
    |   +-- CacheOverflowError
    +-- ComputeError

Every error may carry the index of the audio window it aborted. The
Transcriber fills ``window_index`` before re-raising.
"""

from __future__ import annotations


class VoxscribeError(Exception):
    """Base for all voxscribe exceptions."""

    window_index: int | None = None


# --- Configuration ---


class ConfigError(VoxscribeError):
    """Missing or invalid required configuration value."""


class ModelConfigParseError(ConfigError):
    """Failed to parse a model config.json file."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse model config '{path}': {reason}")


# --- Models ---


class ModelError(VoxscribeError):
    """Model-related error."""


class ModelNotFoundError(ModelError):
    """Model files could not be found locally or remotely."""

    def __init__(self, model_id: str, missing: list[str] | None = None) -> None:
        self.model_id = model_id
        self.missing = missing or []
        msg = f"Model '{model_id}' not found"
        if self.missing:
            msg += f" (missing: {', '.join(self.missing)})"
        super().__init__(msg)


class ModelLoadError(ModelError):
    """Failed to load model into memory."""

    def __init__(self, model_id: str, reason: str) -> None:
        self.model_id = model_id
        self.reason = reason
        super().__init__(f"Failed to load model '{model_id}': {reason}")


# --- Audio ---


class AudioError(VoxscribeError):
    """Audio processing error."""


class AudioFormatError(AudioError):
    """Unsupported or unreadable audio, or a rate the core cannot reconcile."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid audio format: {detail}")


# --- Shapes ---


class ShapeError(VoxscribeError):
    """Tensor shape invariant violated. Always fatal, never retried."""


class ShapeMismatchError(ShapeError):
    """Encoder/projector produced a different number of embeddings than reserved."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Audio embedding count mismatch: prompt reserves {expected} placeholders, "
            f"encoder produced {actual}"
        )


# --- Generation ---


class GenerationError(VoxscribeError):
    """Autoregressive generation error."""


class CacheOverflowError(GenerationError):
    """Growing the KV cache would exceed the decoder's maximum context."""

    def __init__(self, requested: int, max_length: int) -> None:
        self.requested = requested
        self.max_length = max_length
        super().__init__(
            f"KV cache overflow: {requested} positions requested, decoder maximum is {max_length}"
        )


# --- Compute engine ---


class ComputeError(VoxscribeError):
    """Opaque failure from the tensor compute engine.

    The message of the underlying engine error is kept verbatim.
    """

    def __init__(self, detail: str, operation: str | None = None) -> None:
        self.detail = detail
        self.operation = operation
        super().__init__(detail)
