"""Tests for the lcov/genhtml driver (adapters/lcov.py)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from lcovgate.adapters.lcov import LcovTool, ToolInvocationError, trim_tool_output
from lcovgate.utils.subprocess_runner import SubprocessError, SubprocessResult

_RUNNER = "lcovgate.adapters.lcov.run_subprocess"

_SUMMARY_OUTPUT = """\
Reading tracefile /tmp/lcovgate/lcov.info
Summary coverage rate:
  lines......: 85.7% (12 of 14 lines)
  functions..: no data found
  branches...: no data found
"""

_LIST_OUTPUT = """\
Reading tracefile /tmp/lcovgate/lcov.info
                                 |Lines       |Functions  |Branches
Filename                         |Rate     Num|Rate    Num|Rate     Num
======================================================================
lib/api/auth_api.dart            |85.7%     14|    -     0|    -      0
======================================================================
                          Total:|85.7%     14|    -     0|    -      0
"""


def _ok(stdout: str = "") -> SubprocessResult:
    return SubprocessResult(returncode=0, stdout=stdout, stderr="", success=True)


def _failed(stdout: str = "", returncode: int = 1) -> SubprocessResult:
    return SubprocessResult(returncode=returncode, stdout=stdout, stderr="", success=False)


@pytest.fixture
def tool() -> LcovTool:
    return LcovTool(lcov="lcov", genhtml="genhtml", timeout=30.0)


class TestTrimToolOutput:
    def test_head_and_tail(self) -> None:
        assert trim_tool_output("a\nb\nc\nd\n", head=1, tail=2) == ["b"]

    def test_nothing_to_trim(self) -> None:
        assert trim_tool_output("a\nb") == ["a", "b"]

    def test_more_trimmed_than_present(self) -> None:
        assert trim_tool_output("a\nb", head=1, tail=5) == []

    def test_empty_output(self) -> None:
        assert trim_tool_output("", head=1) == []


class TestVersion:
    async def test_parses_version(self, tool: LcovTool) -> None:
        with patch(_RUNNER, new=AsyncMock(return_value=_ok("lcov: LCOV version 2.0-1\n"))) as run:
            assert await tool.version() == "2.0-1"

        assert run.await_args.args[0] == ["lcov", "--version"]
        assert run.await_args.kwargs["merge_stderr"] is True

    async def test_missing_binary_returns_none(self, tool: LcovTool) -> None:
        error = SubprocessError("Command not found: lcov", result=SubprocessResult(returncode=-1, stdout="", stderr="", success=False))
        with patch(_RUNNER, new=AsyncMock(side_effect=error)):
            assert await tool.version() is None


class TestMerge:
    async def test_command_line(self, tool: LcovTool, tmp_path: Path) -> None:
        traces = [Path("a.info"), Path("b.info")]
        output = tmp_path / "out" / "lcov.info"

        with patch(_RUNNER, new=AsyncMock(return_value=_ok())) as run:
            result = await tool.merge(traces, output, "branch_coverage=1")

        assert result == output
        assert output.parent.is_dir()
        assert run.await_args.args[0] == [
            "lcov",
            "--add-tracefile",
            "a.info",
            "--add-tracefile",
            "b.info",
            "--output-file",
            str(output),
            "--rc",
            "branch_coverage=1",
        ]

    async def test_empty_input_is_usage_error(self, tool: LcovTool, tmp_path: Path) -> None:
        with patch(_RUNNER, new=AsyncMock()) as run, pytest.raises(ValueError):
            await tool.merge([], tmp_path / "lcov.info", "branch_coverage=1")

        run.assert_not_awaited()

    async def test_failure_carries_output(self, tool: LcovTool, tmp_path: Path) -> None:
        failed = _failed("lcov: ERROR: no valid records found in tracefile a.info")
        with patch(_RUNNER, new=AsyncMock(return_value=failed)):
            with pytest.raises(ToolInvocationError) as exc_info:
                await tool.merge([Path("a.info")], tmp_path / "lcov.info", "branch_coverage=1")

        assert "no valid records" in exc_info.value.output
        assert "no valid records" in str(exc_info.value)

    async def test_spawn_failure(self, tool: LcovTool, tmp_path: Path) -> None:
        with patch(_RUNNER, new=AsyncMock(side_effect=SubprocessError("Command not found", result=SubprocessResult(returncode=-1, stdout="", stderr="", success=False)))):
            with pytest.raises(ToolInvocationError, match="lcov merge failed"):
                await tool.merge([Path("a.info")], tmp_path / "lcov.info", "branch_coverage=1")


class TestGenhtml:
    async def test_command_line_and_cwd(self, tool: LcovTool, tmp_path: Path) -> None:
        with patch(_RUNNER, new=AsyncMock(return_value=_ok())) as run:
            await tool.genhtml(
                [Path("a.info")],
                tmp_path / "html",
                "lcov_branch_coverage=1",
                cwd=tmp_path,
                ignore_errors="source",
            )

        assert run.await_args.args[0] == [
            "genhtml",
            "a.info",
            "--rc",
            "lcov_branch_coverage=1",
            "--output-directory",
            str(tmp_path / "html"),
            "--ignore-errors",
            "source",
        ]
        assert run.await_args.kwargs["cwd"] == tmp_path

    async def test_no_ignore_errors_by_default(self, tool: LcovTool, tmp_path: Path) -> None:
        with patch(_RUNNER, new=AsyncMock(return_value=_ok())) as run:
            await tool.genhtml([Path("a.info")], tmp_path / "html", "branch_coverage=1")

        assert "--ignore-errors" not in run.await_args.args[0]

    async def test_failure(self, tool: LcovTool, tmp_path: Path) -> None:
        failed = _failed("genhtml: ERROR: cannot read lib/a.dart", returncode=2)
        with patch(_RUNNER, new=AsyncMock(return_value=failed)):
            with pytest.raises(ToolInvocationError, match="exited with code 2"):
                await tool.genhtml([Path("a.info")], tmp_path / "html", "branch_coverage=1")


class TestSummarize:
    async def test_drops_banner(self, tool: LcovTool) -> None:
        with patch(_RUNNER, new=AsyncMock(return_value=_ok(_SUMMARY_OUTPUT))) as run:
            summary = await tool.summarize(Path("lcov.info"), "branch_coverage=1")

        assert summary.splitlines()[0] == "Summary coverage rate:"
        assert "Reading tracefile" not in summary
        assert run.await_args.args[0] == [
            "lcov",
            "--summary",
            "lcov.info",
            "--rc",
            "branch_coverage=1",
        ]


class TestListDetail:
    async def test_drops_banner_and_totals(self, tool: LcovTool) -> None:
        with patch(_RUNNER, new=AsyncMock(return_value=_ok(_LIST_OUTPUT))) as run:
            lines = await tool.list_detail(Path("lcov.info"))

        assert len(lines) == 4
        assert lines[1].startswith("Filename")
        assert lines[-1].startswith("lib/api/auth_api.dart")
        assert run.await_args.args[0] == ["lcov", "--list", "lcov.info", "--list-full-path"]
