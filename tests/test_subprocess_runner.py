"""Tests for the subprocess runner utility."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from lcovgate.utils.subprocess_runner import SubprocessError, SubprocessResult, run_subprocess

_PY = sys.executable

# ── Basic Execution Tests ────────────────────────────────────────────


async def test_run_subprocess_success() -> None:
    """Test successful subprocess execution."""
    result = await run_subprocess(["echo", "hello"])

    assert result.success
    assert result.returncode == 0
    assert "hello" in result.stdout
    assert result.timed_out is False
    assert result.duration_ms > 0


async def test_run_subprocess_with_working_directory(tmp_path: Path) -> None:
    """Test subprocess respects working directory."""
    (tmp_path / "lcov.info").write_text("TN:\n")

    result = await run_subprocess(["ls"], cwd=tmp_path)

    assert result.success
    assert "lcov.info" in result.stdout


async def test_run_subprocess_captures_stderr_separately() -> None:
    """Test stderr is kept apart from stdout by default."""
    result = await run_subprocess([_PY, "-c", "import sys; sys.stderr.write('error msg')"])

    assert result.returncode == 0
    assert "error msg" in result.stderr
    assert result.stdout == ""


async def test_run_subprocess_merges_stderr_in_order() -> None:
    """Test merge_stderr interleaves both streams in write order."""
    script = (
        "import sys\n"
        "sys.stderr.write('Reading tracefile x\\n'); sys.stderr.flush()\n"
        "sys.stdout.write('Summary coverage rate:\\n'); sys.stdout.flush()\n"
    )

    result = await run_subprocess([_PY, "-c", script], merge_stderr=True)

    assert result.success
    assert result.stderr == ""
    assert result.output.splitlines() == ["Reading tracefile x", "Summary coverage rate:"]


async def test_run_subprocess_nonzero_exit_code() -> None:
    """Test subprocess returns non-zero exit code correctly."""
    result = await run_subprocess([_PY, "-c", "import sys; sys.exit(42)"])

    assert not result.success
    assert result.returncode == 42


def test_output_joins_both_streams() -> None:
    result = SubprocessResult(returncode=0, stdout="out\n", stderr="err\n", success=True)

    assert result.output == "out\nerr\n"


# ── Error Handling Tests ──────────────────────────────────────────────


async def test_run_subprocess_command_not_found() -> None:
    """Test subprocess handles command not found."""
    with pytest.raises(SubprocessError) as exc_info:
        await run_subprocess(["nonexistent_command_xyz123"])

    assert "Command not found" in str(exc_info.value)
    assert exc_info.value.result.returncode == -1


async def test_run_subprocess_empty_command() -> None:
    """Test subprocess rejects empty command."""
    with pytest.raises(ValueError, match="Command cannot be empty"):
        await run_subprocess([])


async def test_run_subprocess_invalid_timeout() -> None:
    """Test subprocess rejects invalid timeout."""
    with pytest.raises(ValueError, match="Timeout must be positive"):
        await run_subprocess(["echo", "test"], timeout=0)


async def test_run_subprocess_invalid_working_directory() -> None:
    """Test subprocess rejects non-existent working directory."""
    with pytest.raises(ValueError, match="Working directory does not exist"):
        await run_subprocess(["echo", "test"], cwd=Path("/nonexistent/path/xyz"))


# ── Timeout Tests ─────────────────────────────────────────────────────


async def test_run_subprocess_timeout() -> None:
    """Test subprocess timeout handling."""
    result = await run_subprocess([_PY, "-c", "import time; time.sleep(10)"], timeout=0.1)

    assert not result.success
    assert result.timed_out is True
    assert result.returncode != 0
    assert "timed out" in result.stderr.lower()


# ── Check Parameter Tests ─────────────────────────────────────────────


async def test_run_subprocess_check_raises_on_failure() -> None:
    """Test check=True raises SubprocessError on non-zero exit."""
    with pytest.raises(SubprocessError) as exc_info:
        await run_subprocess([_PY, "-c", "import sys; sys.exit(1)"], check=True)

    assert "Command failed" in str(exc_info.value)
    assert exc_info.value.result.returncode == 1


# ── Environment Variables Tests ────────────────────────────────────────


async def test_run_subprocess_with_environment_variables() -> None:
    """Test extra environment variables reach the child process."""
    result = await run_subprocess(
        [_PY, "-c", "import os; print(os.getenv('LCOV_TEST_VAR', 'not_set'))"],
        env={"LCOV_TEST_VAR": "test_value"},
    )

    assert result.success
    assert "test_value" in result.stdout
