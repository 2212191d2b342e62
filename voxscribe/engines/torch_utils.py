"""Shared PyTorch helpers for compute engines.

Every helper imports torch lazily and degrades to a no-op (or CPU) when torch
is not installed, so the numpy-only core never pays for the import.
"""

from __future__ import annotations

import contextlib
from typing import cast

from voxscribe._types import EngineVariant
from voxscribe.logging import get_logger

logger = get_logger("engines.torch_utils")

# Precision per engine variant when no explicit dtype is configured.
VARIANT_DTYPE: dict[EngineVariant, str] = {
    EngineVariant.NATIVE: "float32",
    EngineVariant.ACCELERATED: "bfloat16",
}


def configure_torch_inference() -> None:
    """Disable autograd process-wide and allow TF32 matmuls.

    Safe to call even if torch is not installed.
    """
    try:
        import torch

        torch.set_grad_enabled(False)
        torch.set_float32_matmul_precision("high")
        logger.debug("torch_inference_configured", grad_enabled=False)
    except ImportError:
        pass


def resolve_device(device_str: str) -> str:
    """Resolve "auto" to "cuda:0" when CUDA is available, else "cpu".

    Args:
        device_str: One of "auto", "cpu", "cuda", or "cuda:N".
    """
    if device_str == "auto":
        try:
            import torch

            if torch.cuda.is_available():
                return "cuda:0"
        except ImportError:
            pass
        return "cpu"
    return device_str


def variant_for_device(device: str) -> EngineVariant:
    """NATIVE for CPU execution, ACCELERATED for anything else."""
    return EngineVariant.NATIVE if device == "cpu" else EngineVariant.ACCELERATED


def get_torch_dtype(dtype_str: str) -> object:
    """Convert a dtype name ("float32", "float16", "bfloat16") to a torch dtype."""
    import torch

    dtype_map: dict[str, object] = {
        "bfloat16": torch.bfloat16,
        "float16": torch.float16,
        "float32": torch.float32,
    }
    return dtype_map.get(dtype_str, torch.float32)


def get_inference_context() -> contextlib.AbstractContextManager[None]:
    """``torch.inference_mode()``, or ``nullcontext()`` if torch is unavailable."""
    try:
        import torch

        return cast("contextlib.AbstractContextManager[None]", torch.inference_mode())
    except ImportError:
        return contextlib.nullcontext()


def release_gpu_memory() -> None:
    """Best-effort ``torch.cuda.empty_cache()``."""
    try:
        import torch

        if torch.cuda.is_available():
            torch.cuda.empty_cache()
    except ImportError:
        pass
