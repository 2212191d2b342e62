"""`voxscribe transcribe` command — runs the local pipeline on one file."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from voxscribe._types import WindowErrorPolicy
from voxscribe.cli.main import cli
from voxscribe.exceptions import VoxscribeError
from voxscribe.logging import get_logger

if TYPE_CHECKING:
    from voxscribe._types import TranscriptionResult
    from voxscribe.config.settings import VoxscribeSettings
    from voxscribe.pipeline.transcriber import Transcriber, TranscriberConfig

logger = get_logger("cli.transcribe")


def build_transcriber(
    settings: VoxscribeSettings,
    config: TranscriberConfig,
    model_id: str,
    cpu: bool,
) -> Transcriber:
    """Resolve the model directory and assemble a Transcriber on the torch engine.

    Raises:
        VoxscribeError: If the model cannot be resolved, parsed or loaded.
    """
    from voxscribe.config.model_config import CONFIG_FILENAME, ModelConfig
    from voxscribe.engines.torch_voxtral import TorchVoxtralEngine
    from voxscribe.pipeline.features import FeatureExtractor, load_mel_filters
    from voxscribe.pipeline.transcriber import Transcriber
    from voxscribe.registry.downloader import ModelDownloader
    from voxscribe.tokenizer.tekken import TOKENIZER_FILENAME, TekkenTokenizer

    downloader = ModelDownloader(settings.model.models_path)
    model_dir = downloader.resolve(model_id, revision=settings.model.revision)

    model_config = ModelConfig.from_json_path(model_dir / CONFIG_FILENAME)
    tokenizer = TekkenTokenizer.from_file(model_dir / TOKENIZER_FILENAME)

    feature_extractor = None
    if settings.model.mel_filters_path:
        filterbank = load_mel_filters(
            settings.model.mel_filters_path,
            n_mels=model_config.num_mel_bins,
            n_fft=model_config.n_fft,
        )
        feature_extractor = FeatureExtractor.for_capacity_samples(
            config.encoder_capacity_samples,
            filterbank=filterbank,
            n_mels=model_config.num_mel_bins,
            n_fft=model_config.n_fft,
            hop_length=model_config.hop_length,
        )

    device = "cpu" if cpu else settings.engine.device
    engine = TorchVoxtralEngine.load(model_dir, device=device, dtype=settings.engine.dtype)
    return Transcriber(
        engine=engine,
        tokenizer=tokenizer,
        model_config=model_config,
        config=config,
        feature_extractor=feature_extractor,
    )


def _render(result: TranscriptionResult, as_json: bool) -> str:
    if as_json:
        return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    return result.text


@cli.command()
@click.argument("file", type=click.Path(exists=False))
@click.option("--cpu", is_flag=True, default=False, help="Run on CPU (native precision).")
@click.option("--model-id", default=None, help="Hub repo id or local model directory.")
@click.option(
    "--language",
    "-l",
    default=None,
    help=(
        "Language tag for the prompt. Only en is built in; other languages need "
        "their lang:<code> token ids under language_tokens in config.json."
    ),
)
@click.option(
    "--output",
    type=click.Choice(["stdout", "file"]),
    default="stdout",
    show_default=True,
    help="Print the transcript or write it next to the input file.",
)
@click.option("--max-new-tokens", type=int, default=None, help="Token limit per window.")
@click.option("--temperature", type=float, default=None, help="0 for greedy decoding.")
@click.option("--top-p", type=float, default=None, help="Nucleus sampling threshold.")
@click.option("--seed", type=int, default=None, help="Random seed for sampling mode.")
@click.option("--chunk-seconds", type=float, default=None, help="Window length in seconds.")
@click.option("--overlap", type=float, default=None, help="Window overlap fraction [0, 1).")
@click.option(
    "--on-window-error",
    type=click.Choice([p.value for p in WindowErrorPolicy]),
    default=None,
    help="Abort the run or skip a failing window.",
)
@click.option(
    "--reconcile-boundaries",
    is_flag=True,
    default=None,
    help="Drop words duplicated across window overlaps.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
def transcribe(
    file: str,
    cpu: bool,
    model_id: str | None,
    language: str | None,
    output: str,
    max_new_tokens: int | None,
    temperature: float | None,
    top_p: float | None,
    seed: int | None,
    chunk_seconds: float | None,
    overlap: float | None,
    on_window_error: str | None,
    reconcile_boundaries: bool | None,
    as_json: bool,
) -> None:
    """Transcribe an audio file."""
    from pydantic import ValidationError

    from voxscribe.config.settings import TranscriptionSettings, get_settings
    from voxscribe.pipeline.transcriber import TranscriberConfig
    from voxscribe.preprocessing.audio_io import decode_audio_file

    file_path = Path(file)
    if not file_path.exists():
        click.echo(f"Error: file not found: {file_path}", err=True)
        sys.exit(1)

    settings = get_settings()
    overrides = {
        "chunk_seconds": chunk_seconds,
        "overlap": overlap,
        "language": language,
        "max_new_tokens": max_new_tokens,
        "temperature": temperature,
        "top_p": top_p,
        "seed": seed,
        "on_window_error": on_window_error,
        "reconcile_boundaries": reconcile_boundaries,
    }
    merged = settings.transcription.model_dump()
    merged.update({key: value for key, value in overrides.items() if value is not None})

    try:
        run_settings = TranscriptionSettings.model_validate(merged)
    except ValidationError as e:
        click.echo(f"Error: invalid options: {e}", err=True)
        sys.exit(2)

    try:
        config = TranscriberConfig.from_settings(run_settings)
        audio, sample_rate = decode_audio_file(file_path)
        transcriber = build_transcriber(
            settings, config, model_id or settings.model.model_id, cpu=cpu
        )
        try:
            result = transcriber.transcribe(audio, sample_rate)
        finally:
            transcriber.close()
    except VoxscribeError as e:
        where = f" (window {e.window_index})" if e.window_index is not None else ""
        click.echo(f"Error{where}: {e}", err=True)
        sys.exit(1)

    if result.failed_windows:
        skipped = ", ".join(str(i) for i in result.failed_windows)
        click.echo(f"Warning: skipped failed windows: {skipped}", err=True)

    rendered = _render(result, as_json)
    if output == "file":
        target = file_path.with_suffix(".json" if as_json else ".txt")
        target.write_text(rendered + "\n", encoding="utf-8")
        logger.info("transcript_written", path=str(target), chars=len(result.text))
        click.echo(f"Transcript written to {target}", err=True)
    else:
        click.echo(rendered)
