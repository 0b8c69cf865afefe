"""Line totals from lcov ``.info`` trace files.

Reads the ``SF``/``DA``/``LF``/``LH``/``end_of_record`` records of a trace and
sums them into one aggregate line-coverage percentage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from lcovgate.adapters.lcov import ToolInvocationError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

_LCOV_SF = "SF"
_LCOV_DA = "DA"
_LCOV_LF = "LF"
_LCOV_LH = "LH"
_LCOV_END = "end_of_record"
_LCOV_DA_PARTS = 2


@dataclass
class _RecordState:
    path: str | None = None
    lines_found: int | None = None
    lines_hit: int | None = None
    da_found: int = 0
    da_hit: int = 0

    @property
    def found(self) -> int:
        return self.lines_found if self.lines_found is not None else self.da_found

    @property
    def hit(self) -> int:
        return self.lines_hit if self.lines_hit is not None else self.da_hit


@dataclass
class TraceTotals:
    """Aggregate line counts of one trace file."""

    files: int = 0
    """Number of ``SF`` records seen."""

    lines_found: int = 0
    """Instrumented lines across all records."""

    lines_hit: int = 0
    """Lines executed at least once across all records."""

    @property
    def percentage(self) -> float:
        """Return unrounded line coverage (0.0-100.0), 100.0 when nothing is instrumented."""
        if self.lines_found == 0:
            return 100.0
        return self.lines_hit * 100.0 / self.lines_found


def _apply_line(state: _RecordState, key: str, value: str) -> None:
    if key == _LCOV_LF:
        try:
            state.lines_found = int(value)
        except ValueError:
            logger.debug("Ignoring malformed LF record: %s", value)
    elif key == _LCOV_LH:
        try:
            state.lines_hit = int(value)
        except ValueError:
            logger.debug("Ignoring malformed LH record: %s", value)
    elif key == _LCOV_DA:
        parts = value.split(",")
        if len(parts) < _LCOV_DA_PARTS:
            return
        try:
            count = int(parts[1].strip())
        except ValueError:
            return
        state.da_found += 1
        if count > 0:
            state.da_hit += 1


def parse_trace_totals(content: str) -> TraceTotals:
    """Sum the line totals of every record in lcov trace text.

    ``LF``/``LH`` summary lines win when a record has them; otherwise its
    ``DA`` lines are counted.
    """
    totals = TraceTotals()
    state = _RecordState()

    def flush() -> None:
        nonlocal state
        if state.path is not None:
            totals.files += 1
            totals.lines_found += state.found
            totals.lines_hit += state.hit
        state = _RecordState()

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line == _LCOV_END:
            flush()
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        if key == _LCOV_SF:
            flush()
            state.path = value.strip()
        else:
            _apply_line(state, key, value.strip())

    flush()
    return totals


def total_coverage(trace_file: Path) -> float:
    """Return the aggregate line-coverage percentage of *trace_file*.

    Raises:
        ToolInvocationError: If the trace file cannot be read.
    """
    try:
        content = trace_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ToolInvocationError(f"Unable to read trace file {trace_file}: {exc}") from exc

    totals = parse_trace_totals(content)
    logger.info(
        "Total coverage: %d/%d lines in %d files (%.3f%%)",
        totals.lines_hit,
        totals.lines_found,
        totals.files,
        totals.percentage,
    )
    return totals.percentage
