"""Main CLI command group for voxscribe."""

from __future__ import annotations

import click

import voxscribe
from voxscribe.logging import configure_logging


@click.group()
@click.version_option(version=voxscribe.__version__, prog_name="voxscribe")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level for stderr output (default: VOXSCRIBE_LOG_LEVEL or WARNING).",
)
def cli(log_level: str | None) -> None:
    """voxscribe — offline speech-to-text with Voxtral."""
    configure_logging(level=log_level)
