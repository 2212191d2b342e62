"""Tokenizer collaborators: token ids back to text."""

from __future__ import annotations

from voxscribe.tokenizer.interface import Tokenizer
from voxscribe.tokenizer.tekken import TekkenTokenizer

__all__ = ["TekkenTokenizer", "Tokenizer"]
