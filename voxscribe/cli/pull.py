"""`voxscribe pull` command — downloads a model from the Hugging Face Hub."""

from __future__ import annotations

import sys

import click

from voxscribe.cli.main import cli
from voxscribe.exceptions import VoxscribeError


@cli.command()
@click.argument("model_id", required=False, default=None)
@click.option("--models-dir", default=None, help="Directory to install models.")
@click.option("--revision", default=None, help="Branch, tag or commit to download.")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing download.")
def pull(model_id: str | None, models_dir: str | None, revision: str | None, force: bool) -> None:
    """Download a Voxtral model (config.json, tekken.json, weights).

    Example: voxscribe pull mistralai/Voxtral-Mini-3B-2507
    """
    from voxscribe.config.settings import get_settings
    from voxscribe.registry.downloader import ModelDownloader

    settings = get_settings().model
    model_id = model_id or settings.model_id
    downloader = ModelDownloader(models_dir or settings.models_path)

    if downloader.is_installed(model_id) and not force:
        click.echo(f"Model '{model_id}' is already installed.")
        click.echo("Use --force to reinstall.")
        return

    click.echo(f"Downloading {model_id}...")
    try:
        model_dir = downloader.download(model_id, revision=revision or settings.revision, force=force)
    except VoxscribeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Model installed in {model_dir}")
