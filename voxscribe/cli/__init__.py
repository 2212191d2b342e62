"""voxscribe CLI.

Registers every command on the main group.
"""

from voxscribe.cli.main import cli
from voxscribe.cli.pull import pull
from voxscribe.cli.transcribe import transcribe

__all__ = ["cli", "pull", "transcribe"]
