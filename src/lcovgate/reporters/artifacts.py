"""Destinations for the generated HTML coverage report."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


class ArtifactUploadError(Exception):
    """Raised when the report cannot be handed to the artifact store."""


class ArtifactStore(Protocol):
    """Something that keeps a set of report files under a name."""

    def upload(self, name: str, files: Sequence[Path], root: Path) -> str:
        """Store *files* (all under *root*) as artifact *name* and return its identifier."""
        ...


class DirectoryArtifactStore:
    """Copies report files into ``<directory>/<name>``.

    The hosting workflow publishes that directory with its own upload step;
    the artifact name doubles as the identifier.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def upload(self, name: str, files: Sequence[Path], root: Path) -> str:
        """Copy *files*, keeping their layout relative to *root*.

        Raises:
            ArtifactUploadError: If a file lies outside *root* or cannot be copied.
        """
        destination = self._directory / name
        try:
            for file in files:
                target = destination / file.relative_to(root)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(file, target)
        except (OSError, ValueError) as exc:
            raise ArtifactUploadError(f"Unable to store artifact {name!r}: {exc}") from exc

        logger.info("Stored %d report file(s) in %s", len(files), destination)
        return name


def collect_files(directory: Path) -> list[Path]:
    """Return every regular file below *directory*, sorted."""
    return sorted(p for p in directory.rglob("*") if p.is_file())
