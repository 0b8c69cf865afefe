"""Subprocess runner with timeout, output capture and error handling.

Every external tool invocation (``lcov``, ``genhtml``) goes through
:func:`run_subprocess` so that output capture, working-directory handling and
failure reporting behave the same way everywhere.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process."""

    stdout: str
    """Standard output captured from the process.

    When the process was run with ``merge_stderr=True`` this holds both
    streams interleaved in the order the process wrote them.
    """

    stderr: str
    """Standard error captured from the process (empty when merged)."""

    success: bool
    """True if returncode is 0."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""

    @property
    def output(self) -> str:
        """Return everything the process printed, stdout first."""
        if self.stderr:
            return f"{self.stdout}{self.stderr}"
        return self.stdout


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float = 300.0,
    env: Mapping[str, str] | None = None,
    merge_stderr: bool = False,
    check: bool = False,
) -> SubprocessResult:
    """Execute a command in a subprocess with timeout and error handling.

    Args:
        command: Command and arguments as a sequence (e.g. ``['lcov', '--summary', f]``).
        cwd: Working directory for the subprocess. Defaults to current directory.
        timeout: Maximum seconds to wait for completion. Defaults to 300.
        env: Extra environment variables, merged over the current environment.
        merge_stderr: Redirect stderr into stdout so both streams are captured
            as one ordered sequence.
        check: If True, raise SubprocessError on non-zero exit code.

    Returns:
        SubprocessResult with exit code, output, and metadata.

    Raises:
        SubprocessError: If the command cannot be started, or if ``check=True``
            and the command returns a non-zero exit code.
        ValueError: If command is empty, timeout is invalid or ``cwd`` is missing.

    Example:
        >>> result = await run_subprocess(
        ...     ['lcov', '--summary', 'lcov.info'],
        ...     merge_stderr=True,
        ... )
        >>> if result.success:
        ...     print(result.stdout)
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None

    logger.debug(
        "Running subprocess: %s (cwd=%s, timeout=%s)",
        " ".join(str(c) for c in command),
        work_dir,
        timeout,
    )

    start_time = time.perf_counter()
    timed_out = False

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
            cwd=work_dir,
            env=full_env,
        )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except TimeoutError:
            logger.warning("Subprocess timed out after %s seconds", timeout)
            timed_out = True
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass  # Process already terminated

            stdout_bytes = b""
            stderr_bytes = b"Process timed out and was killed"

        duration_ms = (time.perf_counter() - start_time) * 1000

        stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
        stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")
        returncode = process.returncode or (-1 if timed_out else 0)

        result = SubprocessResult(
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            success=(returncode == 0 and not timed_out),
            timed_out=timed_out,
            duration_ms=duration_ms,
        )

        logger.debug(
            "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
            returncode,
            duration_ms,
            result.success,
        )

        if check and not result.success:
            raise SubprocessError(
                f"Command failed with exit code {returncode}: {' '.join(str(c) for c in command)}",
                result=result,
            )

        return result

    except SubprocessError:
        raise

    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(
                returncode=-1,
                stdout="",
                stderr=str(exc),
                success=False,
            ),
        ) from exc

    except OSError as exc:
        logger.exception("Unexpected error running subprocess")
        raise SubprocessError(
            f"Subprocess execution failed: {exc}",
            result=SubprocessResult(
                returncode=-1,
                stdout="",
                stderr=str(exc),
                success=False,
            ),
        ) from exc


class SubprocessError(Exception):
    """Exception raised when subprocess execution fails."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: The SubprocessResult from the failed execution.
        """
        super().__init__(message)
        self.result = result
