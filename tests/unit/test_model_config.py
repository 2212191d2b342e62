"""Tests for voxscribe.config.model_config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from voxscribe.config.model_config import ModelConfig
from voxscribe.exceptions import ConfigError, ModelConfigParseError

# Trimmed copy of the published Voxtral-Mini-3B-2507 config.json.
VOXTRAL_CONFIG = {
    "architectures": ["VoxtralForConditionalGeneration"],
    "audio_config": {
        "activation_function": "gelu",
        "hidden_size": 1280,
        "intermediate_size": 5120,
        "max_source_positions": 1500,
        "model_type": "voxtral_encoder",
        "num_attention_heads": 20,
        "num_hidden_layers": 32,
        "num_mel_bins": 128,
        "vocab_size": 51866,
    },
    "audio_token_id": 24,
    "model_type": "voxtral",
    "projector_hidden_act": "gelu",
    "text_config": {
        "head_dim": 128,
        "hidden_size": 3072,
        "intermediate_size": 8192,
        "max_position_embeddings": 131072,
        "model_type": "llama",
        "num_attention_heads": 32,
        "num_hidden_layers": 30,
        "num_key_value_heads": 8,
        "vocab_size": 131072,
    },
}


class TestDefaults:
    def test_geometry(self, model_config: ModelConfig) -> None:
        assert model_config.audio_token_id == 24
        assert model_config.samples_per_audio_token == 1280
        assert model_config.encoder_capacity_samples == 480_000
        assert model_config.max_context_length == 131_072
        assert model_config.num_decoder_layers == 30
        assert model_config.num_mel_bins == 128

    def test_frozen(self, model_config: ModelConfig) -> None:
        with pytest.raises(Exception):
            model_config.audio_token_id = 99  # type: ignore[misc]

    def test_language_tokens(self, model_config: ModelConfig) -> None:
        assert model_config.language_tag_tokens("EN") == (9909, 1058, 1262)
        with pytest.raises(ConfigError):
            model_config.language_tag_tokens("de")


class TestFromJsonPath:
    def test_parses_published_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps(VOXTRAL_CONFIG), encoding="utf-8")

        config = ModelConfig.from_json_path(path)

        assert config.audio_config.hidden_size == 1280
        assert config.text_config.num_key_value_heads == 8
        assert config.projector_hidden_act == "gelu"

    def test_extra_language_tokens(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        data = {**VOXTRAL_CONFIG, "language_tokens": {"fr": [9909, 1058, 3456]}}
        path.write_text(json.dumps(data), encoding="utf-8")

        config = ModelConfig.from_json_path(path)

        assert config.language_tag_tokens("fr") == (9909, 1058, 3456)
        assert config.language_tag_tokens("en") == (9909, 1058, 1262)
        with pytest.raises(ConfigError, match="known: en, fr"):
            config.language_tag_tokens("de")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ModelConfigParseError) as exc_info:
            ModelConfig.from_json_path(tmp_path / "nope.json")
        assert exc_info.value.path.endswith("nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ModelConfigParseError, match="invalid JSON"):
            ModelConfig.from_json_path(path)

    def test_non_object(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ModelConfigParseError):
            ModelConfig.from_json_path(path)

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"text_config": {"max_position_embeddings": 0}}), encoding="utf-8")
        with pytest.raises(ConfigError, match="max_position_embeddings"):
            ModelConfig.from_json_path(path)


class TestValidation:
    def test_placeholder_cannot_be_control_token(self) -> None:
        with pytest.raises(ConfigError, match="collides"):
            ModelConfig.from_dict({"audio_token_id": 2})

    def test_parse_error_is_config_error(self) -> None:
        assert issubclass(ModelConfigParseError, ConfigError)
