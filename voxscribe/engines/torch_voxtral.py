"""Compute engine for Voxtral on PyTorch via Hugging Face transformers.

torch and transformers are optional dependencies (``voxscribe[torch]``);
the imports are guarded and a missing install surfaces as ModelLoadError.

Variants:
    NATIVE       float32 on CPU, bit-stable across runs
    ACCELERATED  bfloat16 on CUDA

transformers API used:
    model = VoxtralForConditionalGeneration.from_pretrained(path, torch_dtype=...)
    model.audio_tower(input_features).last_hidden_state     [1, frames, 1280]
    model.multi_modal_projector(states.reshape(-1, 5120))   [frames / 4, 3072]
    model.get_input_embeddings()(input_ids)                 [1, seq, 3072]
    model(inputs_embeds=..., past_key_values=..., use_cache=True)

The decoder's key/value tensors are mirrored into the voxscribe KVCache
after every forward pass, one block of new positions at a time. The
transformers cache of the last pass is kept and reused while it still
matches the KVCache handed in by the GenerationLoop; any other KVCache is
rebuilt into a fresh DynamicCache before decoding continues.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from voxscribe._types import EngineVariant
from voxscribe.engines.interface import ComputeEngine
from voxscribe.engines.torch_utils import (
    VARIANT_DTYPE,
    configure_torch_inference,
    get_inference_context,
    get_torch_dtype,
    release_gpu_memory,
    resolve_device,
    variant_for_device,
)
from voxscribe.exceptions import ComputeError, ModelLoadError, ShapeError
from voxscribe.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from voxscribe.pipeline.kv_cache import KVCache

try:
    import torch
    from transformers import DynamicCache as _DynamicCache
    from transformers import VoxtralForConditionalGeneration as _VoxtralModel
except ImportError:
    torch = None  # type: ignore[assignment]
    _DynamicCache = None
    _VoxtralModel = None

logger = get_logger("engines.torch_voxtral")


def _past_layers(past: Any) -> list[tuple[Any, Any]]:
    """(keys, values) per layer from any transformers cache representation."""
    if isinstance(past, (tuple, list)):
        return [(layer[0], layer[1]) for layer in past]
    layers = getattr(past, "layers", None)
    if layers is not None:
        return [(layer.keys, layer.values) for layer in layers]
    key_cache = getattr(past, "key_cache", None)
    if key_cache is not None:
        return list(zip(key_cache, past.value_cache, strict=True))
    msg = f"unsupported past_key_values type {type(past).__name__}"
    raise ComputeError(msg, operation="cache")


class TorchVoxtralEngine(ComputeEngine):
    """ComputeEngine backed by ``VoxtralForConditionalGeneration``.

    Args:
        model: Loaded model in eval mode.
        device: Torch device string the model lives on.
        variant: Engine variant; derived from *device* when omitted.
    """

    def __init__(self, model: Any, device: str, variant: EngineVariant | None = None) -> None:
        if torch is None:
            msg = "torch is not installed. Install with: pip install voxscribe[torch]"
            raise ModelLoadError("voxtral", msg)
        self._model = model
        self._device = device
        self._variant = variant or variant_for_device(device)
        self._dtype = next(model.parameters()).dtype
        text_config = model.config.text_config
        self._num_layers = int(text_config.num_hidden_layers)
        self._hidden_size = int(text_config.hidden_size)
        self._intermediate_size = int(model.config.audio_config.intermediate_size)
        # Decoder cache from the last forward pass and the KVCache it mirrors.
        self._past: Any = None
        self._past_owner: KVCache | None = None
        self._past_length = 0

    @classmethod
    def load(
        cls,
        model_path: str | Path,
        device: str = "auto",
        dtype: str | None = None,
    ) -> TorchVoxtralEngine:
        """Load weights from a local model directory.

        Raises:
            ModelLoadError: If torch/transformers are missing or loading fails.
        """
        model_id = str(model_path)
        if _VoxtralModel is None:
            msg = "transformers is not installed. Install with: pip install voxscribe[torch]"
            raise ModelLoadError(model_id, msg)

        configure_torch_inference()
        resolved = resolve_device(device)
        variant = variant_for_device(resolved)
        dtype_str = dtype or VARIANT_DTYPE[variant]

        try:
            model = _VoxtralModel.from_pretrained(
                model_id, torch_dtype=get_torch_dtype(dtype_str)
            )
            model = model.to(resolved).eval()
        except Exception as exc:
            raise ModelLoadError(model_id, str(exc)) from exc

        logger.info(
            "model_loaded",
            model_path=model_id,
            device=resolved,
            dtype=dtype_str,
            variant=variant.value,
        )
        return cls(model, device=resolved, variant=variant)

    @property
    def variant(self) -> EngineVariant:
        return self._variant

    @property
    def num_layers(self) -> int:
        return self._num_layers

    @property
    def hidden_size(self) -> int:
        return self._hidden_size

    @property
    def device(self) -> str:
        return self._device

    def encode(self, features: np.ndarray) -> np.ndarray:
        inputs = self._to_tensor(features)
        with get_inference_context():
            states = self._model.audio_tower(inputs).last_hidden_state
        return self._to_numpy(states.reshape(-1, states.shape[-1]))

    def project(self, embeddings: np.ndarray) -> np.ndarray:
        states = self._to_tensor(embeddings)
        if states.numel() % self._intermediate_size != 0:
            msg = (
                f"encoder states {tuple(states.shape)} cannot be grouped into "
                f"rows of {self._intermediate_size}"
            )
            raise ShapeError(msg)
        with get_inference_context():
            projected = self._model.multi_modal_projector(
                states.reshape(-1, self._intermediate_size)
            )
        return self._to_numpy(projected)

    def embed_tokens(self, token_ids: Sequence[int]) -> np.ndarray:
        ids = torch.tensor([list(token_ids)], dtype=torch.long, device=self._device)
        with get_inference_context():
            embeds = self._model.get_input_embeddings()(ids)
        return self._to_numpy(embeds[0])

    def prefill(self, fused_embeddings: np.ndarray, cache: KVCache) -> tuple[np.ndarray, KVCache]:
        inputs = self._to_tensor(fused_embeddings).unsqueeze(0)
        with get_inference_context():
            outputs = self._model(inputs_embeds=inputs, use_cache=True)
        self._mirror(outputs.past_key_values, cache, new_positions=inputs.shape[1])
        self._keep_past(outputs.past_key_values, cache)
        return self._to_numpy(outputs.logits[0, -1]), cache

    def decode_step(self, token_id: int, cache: KVCache) -> tuple[np.ndarray, KVCache]:
        ids = torch.tensor([[token_id]], dtype=torch.long, device=self._device)
        past = self._past_for(cache)
        with get_inference_context():
            inputs = self._model.get_input_embeddings()(ids)
            outputs = self._model(inputs_embeds=inputs, past_key_values=past, use_cache=True)
        self._mirror(outputs.past_key_values, cache, new_positions=1)
        self._keep_past(outputs.past_key_values, cache)
        return self._to_numpy(outputs.logits[0, -1]), cache

    def close(self) -> None:
        """Drop the model and release accelerator memory."""
        self._model = None
        self._keep_past(None, None)
        release_gpu_memory()

    def _past_for(self, cache: KVCache) -> Any:
        """Decoder cache for *cache*, rebuilt only when it no longer matches.

        The model extends the kept cache in place, so consecutive decode steps
        on the same KVCache hand history to the model without copying it.
        """
        if (
            self._past is not None
            and self._past_owner is cache
            and self._past_length == cache.length
        ):
            return self._past
        logger.debug("decoder_cache_rebuilt", positions=cache.length)
        return self._restore(cache)

    def _keep_past(self, past: Any, cache: KVCache | None) -> None:
        self._past = past
        self._past_owner = cache
        self._past_length = cache.length if cache is not None else 0

    def _restore(self, cache: KVCache) -> Any:
        past = _DynamicCache()
        for layer in range(cache.num_layers):
            keys, values = cache.layer(layer)
            past.update(keys, values, layer)
        return past

    def _mirror(self, past: Any, cache: KVCache, new_positions: int) -> None:
        layers = _past_layers(past)
        if len(layers) != cache.num_layers:
            msg = f"model returned {len(layers)} cache layers, expected {cache.num_layers}"
            raise ShapeError(msg)
        for index, (keys, values) in enumerate(layers):
            cache.append(
                index,
                keys[..., -new_positions:, :].detach(),
                values[..., -new_positions:, :].detach(),
            )

    def _to_tensor(self, array: np.ndarray) -> Any:
        return torch.from_numpy(np.ascontiguousarray(array, dtype=np.float32)).to(
            device=self._device, dtype=self._dtype
        )

    @staticmethod
    def _to_numpy(tensor: Any) -> np.ndarray:
        return tensor.detach().float().cpu().numpy()
