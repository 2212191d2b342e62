"""GenerationLoop — prefill plus autoregressive decoding for one window.

States:
    PREFILL -> DECODING -> DONE, and PREFILL | DECODING -> FAILED

Rules:
- The KV cache is created fresh for each run and dropped when it returns.
- Prefill feeds the whole fused prompt once; every decode step feeds only
  the previous token, the cache supplies earlier context.
- Generation stops on the end-of-sequence token (not part of the output)
  or after ``max_new_tokens`` tokens, so it always terminates.
- A prompt longer than the decoder context raises ``CacheOverflowError``.
  Running out of context later stops with ``StopReason.CACHE_FULL`` and
  keeps the tokens produced so far.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from voxscribe._types import GenerationPhase, GenerationState, StopReason, TranscriptionResult
from voxscribe.engines.interface import guarded_call
from voxscribe.exceptions import CacheOverflowError, ConfigError, GenerationError, ShapeError
from voxscribe.logging import get_logger
from voxscribe.pipeline.kv_cache import KVCache

if TYPE_CHECKING:
    import numpy as np

    from voxscribe._types import FusedEmbeddings
    from voxscribe.engines.interface import ComputeEngine
    from voxscribe.pipeline.sampling import Sampler
    from voxscribe.tokenizer.interface import Tokenizer

logger = get_logger("pipeline.generation")

_VALID_TRANSITIONS: dict[GenerationPhase, frozenset[GenerationPhase]] = {
    GenerationPhase.PREFILL: frozenset({GenerationPhase.DECODING, GenerationPhase.FAILED}),
    GenerationPhase.DECODING: frozenset(
        {GenerationPhase.DECODING, GenerationPhase.DONE, GenerationPhase.FAILED}
    ),
    GenerationPhase.DONE: frozenset(),
    GenerationPhase.FAILED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    """Stop condition and context limit of a GenerationLoop.

    Raises:
        ConfigError: If a limit is not positive.
    """

    eos_token_id: int
    max_context_length: int
    max_new_tokens: int = 1000

    def __post_init__(self) -> None:
        if self.max_new_tokens <= 0:
            msg = f"max_new_tokens must be > 0, got {self.max_new_tokens}"
            raise ConfigError(msg)
        if self.max_context_length <= 0:
            msg = f"max_context_length must be > 0, got {self.max_context_length}"
            raise ConfigError(msg)


def _transition(state: GenerationState, target: GenerationPhase) -> None:
    if target not in _VALID_TRANSITIONS[state.phase]:
        msg = f"Invalid generation transition: {state.phase.value} -> {target.value}"
        raise GenerationError(msg)
    state.phase = target
    if target in (GenerationPhase.DONE, GenerationPhase.FAILED):
        state.done = True


class GenerationLoop:
    """Drives the decoder for one window and detokenizes the result.

    Args:
        engine: Compute engine providing ``prefill`` and ``decode_step``.
        tokenizer: Turns generated ids into text.
        sampler: Next-token policy.
        config: Stop condition and context limit.
    """

    def __init__(
        self,
        engine: ComputeEngine,
        tokenizer: Tokenizer,
        sampler: Sampler,
        config: GenerationConfig,
    ) -> None:
        self._engine = engine
        self._tokenizer = tokenizer
        self._sampler = sampler
        self._config = config

    @property
    def config(self) -> GenerationConfig:
        return self._config

    def new_state(self) -> GenerationState:
        """Fresh state with an empty cache sized for this engine."""
        cache = KVCache(
            num_layers=self._engine.num_layers,
            max_length=self._config.max_context_length,
        )
        return GenerationState(cache=cache)

    def run(self, fused: FusedEmbeddings, window_index: int | None = None) -> TranscriptionResult:
        """Generate the transcript for one window's fused prompt.

        Raises:
            CacheOverflowError: If the prompt alone exceeds the context.
            ShapeError: If the engine breaks the cache growth contract.
            ComputeError: If the engine fails.
        """
        state = self.new_state()
        log = logger.bind(window_index=window_index)

        try:
            logits = self._prefill(state, fused)
            _transition(state, GenerationPhase.DECODING)
            self._decode(state, logits)
        except Exception as exc:
            state.phase = GenerationPhase.FAILED
            state.done = True
            log.error(
                "generation_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                tokens_generated=len(state.tokens_generated),
                position=state.position_index,
            )
            raise

        tokens = tuple(state.tokens_generated)
        text = self._tokenizer.decode(tokens).strip()
        log.info(
            "generation_done",
            prompt_length=len(fused),
            tokens_generated=len(tokens),
            stop_reason=state.stop_reason.value if state.stop_reason else None,
        )
        return TranscriptionResult(text=text, tokens=tokens, stop_reason=state.stop_reason)

    def _prefill(self, state: GenerationState, fused: FusedEmbeddings) -> np.ndarray:
        prompt_length = len(fused)
        if prompt_length > self._config.max_context_length:
            raise CacheOverflowError(
                requested=prompt_length, max_length=self._config.max_context_length
            )

        logits, cache = guarded_call("prefill", self._engine.prefill, fused.values, state.cache)
        if cache.length != prompt_length:
            msg = f"prefill cached {cache.length} positions for a {prompt_length}-token prompt"
            raise ShapeError(msg)

        state.cache = cache
        state.position_index = prompt_length
        return logits

    def _decode(self, state: GenerationState, logits: np.ndarray) -> None:
        config = self._config
        while True:
            token = self._sampler.sample(logits)

            if token == config.eos_token_id:
                self._finish(state, StopReason.EOS)
                return

            state.tokens_generated.append(token)
            if len(state.tokens_generated) >= config.max_new_tokens:
                self._finish(state, StopReason.MAX_NEW_TOKENS)
                return

            if not state.cache.can_grow(1):
                self._finish(state, StopReason.CACHE_FULL)
                return

            try:
                logits, cache = guarded_call(
                    "decode_step", self._engine.decode_step, token, state.cache
                )
            except CacheOverflowError:
                # tokens_generated is non-empty here, so keep the partial text.
                self._finish(state, StopReason.CACHE_FULL)
                return

            state.position_index += 1
            if cache.length != state.position_index:
                msg = (
                    f"decode step left {cache.length} cached positions, "
                    f"expected {state.position_index}"
                )
                raise ShapeError(msg)
            state.cache = cache
            _transition(state, GenerationPhase.DECODING)

    def _finish(self, state: GenerationState, reason: StopReason) -> None:
        state.stop_reason = reason
        _transition(state, GenerationPhase.DONE)
        if reason is StopReason.CACHE_FULL:
            logger.warning(
                "generation_truncated",
                tokens_generated=len(state.tokens_generated),
                max_context_length=self._config.max_context_length,
            )
