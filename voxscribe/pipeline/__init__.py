"""Transcription orchestration core.

Pipeline per window:
ChunkScheduler -> FeatureExtractor -> [engine encode/project] -> PromptBuilder
-> Fusion -> GenerationLoop, then ChunkStitcher across windows.
"""

from __future__ import annotations

from voxscribe.pipeline.chunking import ChunkScheduler
from voxscribe.pipeline.features import FeatureExtractor
from voxscribe.pipeline.fusion import fuse_embeddings
from voxscribe.pipeline.generation import GenerationConfig, GenerationLoop
from voxscribe.pipeline.kv_cache import KVCache
from voxscribe.pipeline.prompt import PromptBuilder
from voxscribe.pipeline.sampling import Sampler
from voxscribe.pipeline.stitching import ChunkStitcher
from voxscribe.pipeline.transcriber import Transcriber, TranscriberConfig

__all__ = [
    "ChunkScheduler",
    "ChunkStitcher",
    "FeatureExtractor",
    "GenerationConfig",
    "GenerationLoop",
    "KVCache",
    "PromptBuilder",
    "Sampler",
    "Transcriber",
    "TranscriberConfig",
    "fuse_embeddings",
]
