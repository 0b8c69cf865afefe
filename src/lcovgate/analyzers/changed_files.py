"""Reduce an lcov per-file listing to the rows of files changed in a pull request.

Listing rows name files relative to the directory the trace was captured in
(or absolute, when ``SF:`` recorded absolute paths), while pull-request file
names are relative to the repository root. Both sides are normalised to
repository-relative POSIX paths before comparing them for exact equality.
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)

NOT_APPLICABLE = " n/a"
"""Detail text used when no changed file has a listing row."""

HEADER_LINES = 3
"""Leading listing lines that form the table header."""

_FIELD_SEPARATOR = "|"
_DETAIL_INDENT = "\n  "


def normalize_working_directory(working_directory: str) -> str:
    """Return *working_directory* as a repo-relative POSIX prefix without slashes.

    ``""``, ``"."`` and ``"./"`` all mean the repository root and map to ``""``.
    """
    cleaned = working_directory.strip().replace("\\", "/")
    if not cleaned:
        return ""
    normalized = posixpath.normpath(cleaned)
    if normalized == ".":
        return ""
    return normalized.rstrip("/")


def _normalize_relative(path: str) -> str:
    normalized = posixpath.normpath(path.strip().replace("\\", "/"))
    return "" if normalized == "." else normalized


def listing_row_path(line: str) -> str | None:
    """Return the file path of a listing data row, or None if *line* has no columns."""
    path, sep, _ = line.partition(_FIELD_SEPARATOR)
    if not sep:
        return None
    return path.strip() or None


def resolve_listing_path(
    path: str, working_directory: str, *, repo_root: str | Path | None = None
) -> str | None:
    """Map a listing path onto the repository-relative form PR file names use.

    Args:
        path: Path as printed by ``lcov --list --list-full-path``.
        working_directory: Directory the traces were produced in, relative to
            the repository root.
        repo_root: Absolute repository root, used to relativise absolute paths.

    Returns:
        The normalised path, or None for an absolute path outside *repo_root*.
    """
    posix_path = path.strip().replace("\\", "/")

    if posixpath.isabs(posix_path):
        if repo_root is None:
            return None
        root = PurePosixPath(posixpath.normpath(str(repo_root).replace("\\", "/")))
        candidate = PurePosixPath(posixpath.normpath(posix_path))
        try:
            return _normalize_relative(str(candidate.relative_to(root)))
        except ValueError:
            return None

    relative = _normalize_relative(posix_path)
    prefix = normalize_working_directory(working_directory)
    if not prefix or relative == prefix or relative.startswith(prefix + "/"):
        return relative
    return f"{prefix}/{relative}"


def filter_listing(
    listing_lines: Sequence[str],
    changed_files: Iterable[str],
    working_directory: str,
    *,
    repo_root: str | Path | None = None,
) -> list[str]:
    """Return the header lines plus the listing rows of changed files.

    Each changed file is consumed by the first row that matches it, so it can
    satisfy at most one row. Matching is exact path equality after
    normalisation; ``lib/user.dart`` never matches ``lib/user_test.dart``.
    Neither input is modified.
    """
    remaining = dict.fromkeys(_normalize_relative(f) for f in changed_files)
    kept = list(listing_lines[:HEADER_LINES])

    for line in listing_lines[HEADER_LINES:]:
        row_path = listing_row_path(line)
        if row_path is None:
            continue
        resolved = resolve_listing_path(row_path, working_directory, repo_root=repo_root)
        if resolved is None or resolved not in remaining:
            continue
        logger.debug("Changed file %s matches listing row", resolved)
        del remaining[resolved]
        kept.append(line)

    return kept


def filter_to_changed_files(
    listing_lines: Sequence[str],
    changed_files: Iterable[str],
    working_directory: str,
    *,
    repo_root: str | Path | None = None,
) -> str:
    """Render the changed-file detail block for a coverage comment.

    Returns:
        :data:`NOT_APPLICABLE` when no changed file has a row, otherwise the
        header and matching rows, each on its own indented line.
    """
    kept = filter_listing(
        listing_lines, changed_files, working_directory, repo_root=repo_root
    )
    header_count = min(HEADER_LINES, len(listing_lines))
    if len(kept) <= header_count:
        return NOT_APPLICABLE
    return _DETAIL_INDENT + _DETAIL_INDENT.join(kept)
