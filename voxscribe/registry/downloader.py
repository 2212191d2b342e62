"""Resolve and download Voxtral model directories.

A model directory is complete when it holds ``config.json``, ``tekken.json``
and at least one ``*.safetensors`` weight file. Complete directories are
reused as-is; otherwise the missing files are fetched from the Hugging Face
Hub with ``snapshot_download``.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from voxscribe.config.model_config import CONFIG_FILENAME
from voxscribe.exceptions import ModelLoadError, ModelNotFoundError
from voxscribe.logging import get_logger
from voxscribe.tokenizer.tekken import TOKENIZER_FILENAME

logger = get_logger("registry.downloader")

DEFAULT_MODEL_ID = "mistralai/Voxtral-Mini-3B-2507"
WEIGHTS_PATTERN = "*.safetensors"
REQUIRED_FILES = (CONFIG_FILENAME, TOKENIZER_FILENAME)
ALLOW_PATTERNS = [*REQUIRED_FILES, WEIGHTS_PATTERN, "*.safetensors.index.json"]


def missing_files(model_dir: Path) -> list[str]:
    """Names of required artifacts absent from *model_dir*."""
    missing = [name for name in REQUIRED_FILES if not (model_dir / name).is_file()]
    if not any(model_dir.glob(WEIGHTS_PATTERN)):
        missing.append(WEIGHTS_PATTERN)
    return missing


class ModelDownloader:
    """Locate a model locally, downloading it from the Hub when needed.

    Flow:
    1. A path to an existing directory is used directly (must be complete)
    2. A repo id maps to ``models_dir/<org>--<name>/``
    3. A complete cached directory is reused
    4. Otherwise the repo is fetched via ``snapshot_download`` and validated
    """

    def __init__(self, models_dir: str | Path | None = None) -> None:
        if models_dir is None:
            from voxscribe.config.settings import get_settings

            models_dir = get_settings().model.models_path
        self._models_dir = Path(models_dir).expanduser()

    @property
    def models_dir(self) -> Path:
        """Base models directory."""
        return self._models_dir

    def local_dir(self, model_id: str) -> Path:
        """Cache directory for a Hub repo id."""
        return self._models_dir / model_id.replace("/", "--")

    def is_installed(self, model_id: str) -> bool:
        model_dir = self.local_dir(model_id)
        return model_dir.is_dir() and not missing_files(model_dir)

    def resolve(self, model: str, *, revision: str = "main", download: bool = True) -> Path:
        """Return a complete local directory for *model* (repo id or path).

        Raises:
            ModelNotFoundError: If the model is incomplete and cannot be
                downloaded.
            ModelLoadError: If huggingface_hub is missing or the download fails.
        """
        candidate = Path(model).expanduser()
        if candidate.is_dir():
            missing = missing_files(candidate)
            if missing:
                raise ModelNotFoundError(str(candidate), missing)
            logger.debug("model_local", path=str(candidate))
            return candidate

        if self.is_installed(model):
            model_dir = self.local_dir(model)
            logger.debug("model_cached", model=model, path=str(model_dir))
            return model_dir

        if not download:
            model_dir = self.local_dir(model)
            missing = missing_files(model_dir) if model_dir.is_dir() else list(ALLOW_PATTERNS[:3])
            raise ModelNotFoundError(model, missing)

        return self.download(model, revision=revision)

    def download(self, model_id: str, *, revision: str = "main", force: bool = False) -> Path:
        """Download *model_id* from the Hugging Face Hub.

        Args:
            model_id: Hub repository id.
            revision: Branch, tag or commit.
            force: Remove any existing directory first.

        Returns:
            Path to the complete model directory.

        Raises:
            ModelLoadError: If huggingface_hub is not installed or the
                download fails.
            ModelNotFoundError: If the repository lacks required files.
        """
        try:
            from huggingface_hub import snapshot_download
        except ImportError:
            msg = "huggingface_hub is not installed. Install with: pip install voxscribe[hub]"
            raise ModelLoadError(model_id, msg) from None

        model_dir = self.local_dir(model_id)
        self._models_dir.mkdir(parents=True, exist_ok=True)

        if model_dir.exists() and force:
            shutil.rmtree(model_dir)

        logger.info(
            "download_starting",
            model=model_id,
            revision=revision,
            target=str(model_dir),
        )

        try:
            downloaded_path = snapshot_download(
                repo_id=model_id,
                revision=revision,
                local_dir=str(model_dir),
                allow_patterns=ALLOW_PATTERNS,
            )
        except Exception as exc:
            raise ModelLoadError(model_id, str(exc)) from exc

        logger.info("download_complete", model=model_id, path=downloaded_path)

        missing = missing_files(model_dir)
        if missing:
            raise ModelNotFoundError(model_id, missing)
        return model_dir
