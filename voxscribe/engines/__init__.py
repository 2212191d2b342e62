"""Compute engines behind the ``ComputeEngine`` interface.

The PyTorch engine lives in ``voxscribe.engines.torch_voxtral`` and needs the
``torch`` extra; importing this package never imports torch.
"""

from __future__ import annotations

from voxscribe.engines.interface import ComputeEngine, guarded_call

__all__ = ["ComputeEngine", "guarded_call"]
