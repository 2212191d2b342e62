"""Transcriber -- orchestrates the per-window pipeline for a whole recording.

Flow per run:
    PCM -> resample (if needed) -> ChunkScheduler
    per window: FeatureExtractor -> encode -> project -> PromptBuilder
                -> embed_tokens -> Fusion -> GenerationLoop
    ChunkStitcher -> TranscriptionResult

Windows are processed one at a time, each to completion. A failing window
has its index attached to the raised error. Under the default ``abort``
policy the run stops there; under ``skip`` the window is recorded in
``failed_windows`` and the run continues. Shape errors always abort.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from voxscribe._audio_constants import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_S,
    DEFAULT_ENCODER_CAPACITY_S,
    STT_SAMPLE_RATE,
)
from voxscribe._types import EMPTY_TRANSCRIPTION, WindowErrorPolicy
from voxscribe.engines.interface import guarded_call
from voxscribe.exceptions import AudioFormatError, ConfigError, ShapeError, VoxscribeError
from voxscribe.logging import get_logger
from voxscribe.pipeline.chunking import ChunkScheduler
from voxscribe.pipeline.features import FeatureExtractor
from voxscribe.pipeline.fusion import fuse_embeddings
from voxscribe.pipeline.generation import GenerationConfig, GenerationLoop
from voxscribe.pipeline.prompt import PromptBuilder
from voxscribe.pipeline.sampling import Sampler
from voxscribe.pipeline.stitching import ChunkStitcher
from voxscribe.preprocessing.audio_io import decode_audio_file
from voxscribe.preprocessing.resample import ResampleStage

if TYPE_CHECKING:
    from pathlib import Path

    from voxscribe._types import AudioWindow, TranscriptionResult
    from voxscribe.config.model_config import ModelConfig
    from voxscribe.config.settings import TranscriptionSettings
    from voxscribe.engines.interface import ComputeEngine
    from voxscribe.tokenizer.interface import Tokenizer

logger = get_logger("pipeline.transcriber")


@dataclass(frozen=True, slots=True)
class TranscriberConfig:
    """Run parameters of a Transcriber, fixed at construction.

    ``encoder_capacity_samples`` is the length every window's features are
    padded to; ``chunk_samples`` is the window length the scheduler cuts.
    They are independent, with ``chunk_samples <= encoder_capacity_samples``.

    Raises:
        ConfigError: If the chunk does not fit the encoder capacity.
    """

    chunk_samples: int = int(DEFAULT_CHUNK_S * STT_SAMPLE_RATE)
    encoder_capacity_samples: int = int(DEFAULT_ENCODER_CAPACITY_S * STT_SAMPLE_RATE)
    overlap: float = DEFAULT_CHUNK_OVERLAP
    language: str = "en"
    max_new_tokens: int = 1000
    temperature: float = 0.0
    top_p: float | None = None
    seed: int | None = None
    error_policy: WindowErrorPolicy = WindowErrorPolicy.ABORT
    reconcile_boundaries: bool = False

    def __post_init__(self) -> None:
        if self.encoder_capacity_samples <= 0:
            msg = f"encoder_capacity_samples must be > 0, got {self.encoder_capacity_samples}"
            raise ConfigError(msg)
        if self.chunk_samples > self.encoder_capacity_samples:
            msg = (
                f"chunk_samples ({self.chunk_samples}) exceeds encoder capacity "
                f"({self.encoder_capacity_samples})"
            )
            raise ConfigError(msg)

    @classmethod
    def from_settings(cls, settings: TranscriptionSettings) -> TranscriberConfig:
        return cls(
            chunk_samples=settings.chunk_samples,
            encoder_capacity_samples=settings.encoder_capacity_samples,
            overlap=settings.overlap,
            language=settings.language,
            max_new_tokens=settings.max_new_tokens,
            temperature=settings.temperature,
            top_p=settings.top_p,
            seed=settings.seed,
            error_policy=settings.window_error_policy,
            reconcile_boundaries=settings.reconcile_boundaries,
        )


class Transcriber:
    """Turns 16kHz mono PCM of any length into one transcript.

    Args:
        engine: Compute engine for encoder, projector and decoder.
        tokenizer: Detokenizer for generated ids.
        model_config: Token ids and encoder geometry.
        config: Run parameters.
        feature_extractor: Shared extractor; built from ``model_config`` and
            ``config.encoder_capacity_samples`` when omitted.
        resampler: Collaborator used when input is not at 16kHz.
        rng: Random source for sampling mode. When omitted each run creates
            ``numpy.random.default_rng(config.seed)``.

    Raises:
        ConfigError: On invalid windowing parameters, an unknown language or
            an encoder capacity larger than the model supports.
    """

    def __init__(
        self,
        engine: ComputeEngine,
        tokenizer: Tokenizer,
        model_config: ModelConfig,
        config: TranscriberConfig | None = None,
        feature_extractor: FeatureExtractor | None = None,
        resampler: ResampleStage | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        config = config or TranscriberConfig()
        if config.encoder_capacity_samples > model_config.encoder_capacity_samples:
            msg = (
                f"encoder_capacity_samples ({config.encoder_capacity_samples}) exceeds "
                f"the model's encoder window ({model_config.encoder_capacity_samples})"
            )
            raise ConfigError(msg)

        if feature_extractor is None:
            feature_extractor = FeatureExtractor.for_capacity_samples(
                config.encoder_capacity_samples,
                n_mels=model_config.num_mel_bins,
                n_fft=model_config.n_fft,
                hop_length=model_config.hop_length,
            )
        if feature_extractor.capacity_samples > model_config.encoder_capacity_samples:
            msg = (
                f"feature extractor capacity ({feature_extractor.capacity_samples} samples) "
                f"exceeds the model's encoder window ({model_config.encoder_capacity_samples})"
            )
            raise ConfigError(msg)
        if config.chunk_samples > feature_extractor.capacity_samples:
            msg = (
                f"chunk_samples ({config.chunk_samples}) exceeds feature extractor "
                f"capacity ({feature_extractor.capacity_samples})"
            )
            raise ConfigError(msg)

        self._engine = engine
        self._tokenizer = tokenizer
        self._model_config = model_config
        self._config = config
        self._rng = rng
        self._scheduler = ChunkScheduler(config.chunk_samples, config.overlap)
        self._features = feature_extractor
        self._prompts = PromptBuilder(model_config, language=config.language)
        self._stitcher = ChunkStitcher(reconcile_boundaries=config.reconcile_boundaries)
        self._resampler = resampler or ResampleStage(model_config.sample_rate)
        self._generation_config = GenerationConfig(
            eos_token_id=model_config.special_tokens.eos,
            max_context_length=model_config.max_context_length,
            max_new_tokens=config.max_new_tokens,
        )

    @property
    def config(self) -> TranscriberConfig:
        return self._config

    @property
    def scheduler(self) -> ChunkScheduler:
        return self._scheduler

    def transcribe(self, audio: np.ndarray, sample_rate: int = STT_SAMPLE_RATE) -> TranscriptionResult:
        """Transcribe mono PCM in ``[-1.0, 1.0]``.

        Raises:
            AudioFormatError: If the audio is not mono or resampling fails.
            VoxscribeError: The first window failure under the ``abort``
                policy, or any shape error, with ``window_index`` set.
        """
        samples = self._prepare_audio(audio, sample_rate)
        windows = self._scheduler.plan(len(samples))
        if not windows:
            logger.info("transcription_empty_audio")
            return EMPTY_TRANSCRIPTION

        loop = GenerationLoop(
            engine=self._engine,
            tokenizer=self._tokenizer,
            sampler=self._new_sampler(),
            config=self._generation_config,
        )

        logger.info(
            "transcription_start",
            samples=len(samples),
            windows=len(windows),
            chunk_samples=self._config.chunk_samples,
            step=self._scheduler.step,
            engine_variant=self._engine.variant.value,
        )

        results: list[TranscriptionResult] = []
        failed: list[int] = []
        for window in windows:
            try:
                results.append(self.transcribe_window(window, samples, loop))
            except VoxscribeError as exc:
                exc.window_index = window.index
                if not self._should_skip(exc):
                    logger.error(
                        "window_failed",
                        window_index=window.index,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    raise
                logger.warning(
                    "window_skipped",
                    window_index=window.index,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                failed.append(window.index)

        final = self._stitcher.stitch(results, failed_windows=failed)
        logger.info(
            "transcription_done",
            windows=len(windows),
            failed_windows=len(failed),
            tokens=len(final.tokens),
            text_chars=len(final.text),
        )
        return final

    def transcribe_file(self, path: str | Path) -> TranscriptionResult:
        """Decode an audio file and transcribe it.

        Raises:
            AudioFormatError: If the file cannot be read or decoded.
        """
        audio, sample_rate = decode_audio_file(path)
        return self.transcribe(audio, sample_rate)

    def close(self) -> None:
        """Release the engine's model memory."""
        self._engine.close()

    def transcribe_window(
        self,
        window: AudioWindow,
        audio: np.ndarray,
        loop: GenerationLoop,
    ) -> TranscriptionResult:
        """Run one window through features, fusion and generation."""
        features = self._features.extract(window.slice(audio))

        encoded = guarded_call("encode", self._engine.encode, features.values)
        audio_embeddings = guarded_call("project", self._engine.project, encoded)

        prompt = self._prompts.build_for(features)
        text_embeddings = guarded_call("embed_tokens", self._engine.embed_tokens, prompt.token_ids)
        fused = fuse_embeddings(prompt, text_embeddings, audio_embeddings)

        logger.debug(
            "window_prepared",
            window_index=window.index,
            start_sample=window.start_sample,
            end_sample=window.end_sample,
            valid_frames=features.valid_frames,
            placeholders=prompt.num_placeholders,
            prompt_length=len(prompt),
        )
        return loop.run(fused, window_index=window.index)

    def _prepare_audio(self, audio: np.ndarray, sample_rate: int) -> np.ndarray:
        samples = np.asarray(audio, dtype=np.float32)
        if samples.ndim != 1:
            msg = f"expected mono 1-D samples, got shape {samples.shape}"
            raise AudioFormatError(msg)

        target = self._resampler.target_sample_rate
        if sample_rate == target:
            return samples

        try:
            resampled, _ = self._resampler.process(samples, sample_rate)
        except AudioFormatError:
            raise
        except Exception as exc:
            msg = f"resampling {sample_rate}Hz -> {target}Hz failed: {exc}"
            raise AudioFormatError(msg) from exc

        logger.debug(
            "audio_resampled",
            from_rate=sample_rate,
            to_rate=target,
            samples=len(resampled),
        )
        return np.asarray(resampled, dtype=np.float32)

    def _new_sampler(self) -> Sampler:
        config = self._config
        if self._rng is not None:
            return Sampler(temperature=config.temperature, top_p=config.top_p, rng=self._rng)
        return Sampler.from_seed(temperature=config.temperature, top_p=config.top_p, seed=config.seed)

    def _should_skip(self, exc: VoxscribeError) -> bool:
        if isinstance(exc, ShapeError):
            return False
        return self._config.error_policy is WindowErrorPolicy.SKIP
