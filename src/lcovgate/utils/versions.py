"""lcov version detection and version-dependent option selection."""

from __future__ import annotations

import logging
import re
from itertools import zip_longest

logger = logging.getLogger(__name__)

# lcov 2.0 renamed the branch-coverage runtime-configuration key.
BRANCH_COVERAGE_THRESHOLD = "2.0"
BRANCH_COVERAGE_FLAG = "branch_coverage=1"
LEGACY_BRANCH_COVERAGE_FLAG = "lcov_branch_coverage=1"

_VERSION_RE = re.compile(r"^\d+(?:\.\d+)*(?:-\d+)?$")
_LCOV_VERSION_RE = re.compile(r"lcov: LCOV version (\d+\.\d+(?:-\d+)?)")


def parse_lcov_version(output: str) -> str | None:
    """Extract the version string from ``lcov --version`` output.

    Args:
        output: Captured tool output, e.g. ``"lcov: LCOV version 2.0-1"``.

    Returns:
        The ``MAJOR.MINOR[-PATCH]`` string, or None if no version line is present.
    """
    match = _LCOV_VERSION_RE.search(output)
    return match.group(1) if match else None


def _segments(version: str) -> list[int]:
    """Split ``1.14-1`` into ``[1, 14, 1]``."""
    version = version.strip()
    if not _VERSION_RE.match(version):
        raise ValueError(f"Invalid version string: {version!r}")
    return [int(part) for part in re.split(r"[.-]", version)]


def compare_versions(left: str, right: str) -> int:
    """Compare two dotted version strings segment by segment.

    Missing segments count as zero, so ``1.14`` equals ``1.14.0`` but is
    older than ``1.14-1``.

    Returns:
        A negative number if ``left`` is older, zero if equal, positive if newer.

    Raises:
        ValueError: If either version is not ``MAJOR.MINOR[-PATCH]``-shaped.
    """
    for a, b in zip_longest(_segments(left), _segments(right), fillvalue=0):
        if a != b:
            return a - b
    return 0


def select_branch_coverage_flag(version: str | None) -> str:
    """Return the ``--rc`` setting that enables branch coverage for *version*.

    Unknown or unparseable versions fall back to the legacy spelling rather
    than failing the run.
    """
    if not version:
        logger.warning("lcov version unknown, using %s", LEGACY_BRANCH_COVERAGE_FLAG)
        return LEGACY_BRANCH_COVERAGE_FLAG

    try:
        is_modern = compare_versions(version, BRANCH_COVERAGE_THRESHOLD) >= 0
    except ValueError:
        logger.warning(
            "Could not parse lcov version %r, using %s", version, LEGACY_BRANCH_COVERAGE_FLAG
        )
        return LEGACY_BRANCH_COVERAGE_FLAG

    flag = BRANCH_COVERAGE_FLAG if is_modern else LEGACY_BRANCH_COVERAGE_FLAG
    logger.debug("lcov %s uses --rc %s", version, flag)
    return flag
