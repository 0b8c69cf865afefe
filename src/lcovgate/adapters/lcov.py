"""Driver for the ``lcov`` and ``genhtml`` executables.

All knowledge of the tools' command lines and of their fixed textual output
layout lives here. ``lcov`` writes its informational banners to standard
error, so every text-producing call captures both streams as one ordered
sequence and trims the fixed leading/trailing lines positionally.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from lcovgate.utils.subprocess_runner import SubprocessError, SubprocessResult, run_subprocess
from lcovgate.utils.versions import parse_lcov_version

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 600.0

# "Reading tracefile ..." banner before the summary/listing.
_BANNER_LINES = 1
# "Total:|..." row and the "=====" rule after the listing.
_LISTING_FOOTER_LINES = 2


class ToolInvocationError(Exception):
    """Raised when ``lcov``/``genhtml`` cannot be run or exits non-zero."""

    def __init__(self, message: str, output: str = "") -> None:
        """Initialize with a message and the tool's captured output.

        Args:
            message: Error description.
            output: Everything the tool printed, kept verbatim.
        """
        super().__init__(f"{message}\n{output}".rstrip() if output else message)
        self.output = output


def trim_tool_output(output: str, *, head: int = 0, tail: int = 0) -> list[str]:
    """Split tool output into lines and drop *head* leading and *tail* trailing lines."""
    lines = output.strip().splitlines()
    end = len(lines) - tail if tail else len(lines)
    return lines[head:max(head, end)]


class LcovTool:
    """Thin async wrapper around the ``lcov`` and ``genhtml`` command lines."""

    def __init__(
        self,
        *,
        lcov: str | None = None,
        genhtml: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._lcov = lcov or shutil.which("lcov") or "lcov"
        self._genhtml = genhtml or shutil.which("genhtml") or "genhtml"
        self._timeout = timeout

    async def _run(
        self, command: Sequence[str], *, cwd: Path | None = None, what: str
    ) -> SubprocessResult:
        try:
            result = await run_subprocess(
                command, cwd=cwd, timeout=self._timeout, merge_stderr=True
            )
        except (SubprocessError, ValueError) as exc:
            raise ToolInvocationError(f"{what} failed: {exc}") from exc

        if not result.success:
            raise ToolInvocationError(
                f"{what} exited with code {result.returncode}", result.output
            )
        return result

    async def version(self) -> str | None:
        """Return the installed lcov version, or None when it cannot be determined."""
        try:
            result = await run_subprocess(
                [self._lcov, "--version"], timeout=self._timeout, merge_stderr=True
            )
        except (SubprocessError, ValueError) as exc:
            logger.warning("Unable to query lcov version: %s", exc)
            return None

        version = parse_lcov_version(result.output)
        logger.info("Detected lcov version: %s", version or "unknown")
        return version

    async def merge(self, trace_files: Sequence[Path], output_file: Path, flag: str) -> Path:
        """Merge *trace_files* into *output_file* and return its path.

        Raises:
            ValueError: If no trace files are given.
            ToolInvocationError: If lcov fails.
        """
        if not trace_files:
            raise ValueError("At least one trace file is required to merge")

        args = [self._lcov]
        for trace_file in trace_files:
            args.extend(["--add-tracefile", str(trace_file)])
        args.extend(["--output-file", str(output_file), "--rc", flag])

        output_file.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Merging %d trace file(s) into %s", len(trace_files), output_file)
        await self._run(args, what="lcov merge")
        return output_file

    async def genhtml(
        self,
        trace_files: Sequence[Path],
        output_directory: Path,
        flag: str,
        *,
        cwd: Path | None = None,
        ignore_errors: str = "",
    ) -> Path:
        """Render an HTML report for *trace_files* into *output_directory*.

        Raises:
            ToolInvocationError: If genhtml fails.
        """
        args = [self._genhtml, *(str(f) for f in trace_files), "--rc", flag]
        args.extend(["--output-directory", str(output_directory)])
        if ignore_errors:
            args.extend(["--ignore-errors", ignore_errors])

        logger.info("Generating HTML report in %s", output_directory)
        await self._run(args, cwd=cwd, what="genhtml")
        return output_directory

    async def summarize(self, trace_file: Path, flag: str | None = None) -> str:
        """Return the ``lcov --summary`` text without the leading banner."""
        args = [self._lcov, "--summary", str(trace_file)]
        if flag:
            args.extend(["--rc", flag])
        result = await self._run(args, what="lcov summary")
        return "\n".join(trim_tool_output(result.output, head=_BANNER_LINES))

    async def list_detail(self, trace_file: Path, flag: str | None = None) -> list[str]:
        """Return the full-path per-file listing without banner, totals and rule."""
        args = [self._lcov, "--list", str(trace_file), "--list-full-path"]
        if flag:
            args.extend(["--rc", flag])
        result = await self._run(args, what="lcov list")
        return trim_tool_output(result.output, head=_BANNER_LINES, tail=_LISTING_FOOTER_LINES)
