"""Decoder for Mistral's Tekken tokenizer file (``tekken.json``).

Token ids below ``default_num_special_tokens`` are control tokens and decode
to nothing; regular ids index ``vocab`` after that offset and carry their
bytes base64-encoded. Concatenated bytes are decoded as UTF-8.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import TYPE_CHECKING

from voxscribe.exceptions import ConfigError
from voxscribe.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("tokenizer.tekken")

TOKENIZER_FILENAME = "tekken.json"

_DEFAULT_NUM_SPECIAL_TOKENS = 1000


class TekkenTokenizer:
    """Read-only Tekken decoder.

    Args:
        vocab_bytes: Byte string of each regular token, by rank.
        num_special_tokens: Ids reserved for control tokens.
        special_ids: Additional ids that decode to nothing.
    """

    __slots__ = ("_num_special", "_special_ids", "_vocab_bytes")

    def __init__(
        self,
        vocab_bytes: Sequence[bytes],
        num_special_tokens: int = _DEFAULT_NUM_SPECIAL_TOKENS,
        special_ids: frozenset[int] = frozenset(),
    ) -> None:
        self._vocab_bytes = tuple(vocab_bytes)
        self._num_special = num_special_tokens
        self._special_ids = special_ids

    @classmethod
    def from_file(cls, path: str | Path) -> TekkenTokenizer:
        """Load ``tekken.json``.

        Raises:
            ConfigError: If the file is missing or malformed.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Could not load tokenizer '{path}': {exc}"
            raise ConfigError(msg) from exc

        try:
            vocab = [base64.b64decode(entry["token_bytes"]) for entry in data["vocab"]]
        except (KeyError, TypeError, binascii.Error) as exc:
            msg = f"Tokenizer '{path}' has a malformed vocab: {exc}"
            raise ConfigError(msg) from exc

        config = data.get("config", {})
        num_special = int(config.get("default_num_special_tokens", _DEFAULT_NUM_SPECIAL_TOKENS))
        special_ids = frozenset(
            int(token["rank"]) for token in data.get("special_tokens", []) if "rank" in token
        )

        logger.debug(
            "tokenizer_loaded",
            path=str(path),
            vocab_size=len(vocab),
            num_special_tokens=num_special,
        )
        return cls(vocab, num_special_tokens=num_special, special_ids=special_ids)

    @property
    def vocab_size(self) -> int:
        return self._num_special + len(self._vocab_bytes)

    def token_bytes(self, token_id: int) -> bytes:
        """Raw bytes of one token; empty for control and out-of-range ids."""
        if token_id < self._num_special or token_id in self._special_ids:
            return b""
        rank = token_id - self._num_special
        if rank >= len(self._vocab_bytes):
            return b""
        return self._vocab_bytes[rank]

    def decode(self, token_ids: Sequence[int]) -> str:
        out = bytearray()
        for token_id in token_ids:
            out += self.token_bytes(int(token_id))
        return out.decode("utf-8", errors="replace")
