"""Terminal result of a coverage run."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lcovgate.reporters.github_comment import CommentResult


_PERCENT_DIGITS = 2
# Absorbs float noise such as 85.71 * 100 == 8570.999999999999.
_FLOOR_EPSILON_DIGITS = 6


def floor_percentage(value: float) -> float:
    """Round a percentage down to two decimals.

    Displayed and published totals never exceed the value the gate compared,
    so 79.996 shows as 79.99, never as 80.
    """
    scale = 10**_PERCENT_DIGITS
    return math.floor(round(value * scale, _FLOOR_EPSILON_DIGITS)) / scale


def format_percentage(value: float) -> str:
    """Format a percentage rounded down, without trailing zeros (``80.0`` -> ``"80"``)."""
    return f"{floor_percentage(value):.2f}".rstrip("0").rstrip(".")


def threshold_message(total: float, minimum: float) -> str:
    """Return the failure text for coverage below the minimum."""
    return (
        f"The code coverage is too low: {format_percentage(total)}. "
        f"Expected at least {format_percentage(minimum)}."
    )


class ThresholdNotMetError(Exception):
    """Total coverage is below the configured minimum.

    Not a fault: this is the normal failing verdict of a run.
    """

    def __init__(self, total: float, minimum: float) -> None:
        super().__init__(threshold_message(total, minimum))
        self.total = total
        self.minimum = minimum


@dataclass
class ActionOutcome:
    """Everything a finished run produced."""

    total_coverage: float
    """Aggregate line coverage of the merged trace (0.0-100.0), unrounded."""

    minimum_coverage: float
    """Configured threshold (0.0-100.0)."""

    artifact_id: str | None = None
    """Identifier of the uploaded HTML report, if one was uploaded."""

    comments: list[CommentResult] = field(default_factory=list)
    """Comments created or updated."""

    comment_errors: dict[int, str] = field(default_factory=dict)
    """Comment failures by pull request number (never affect the verdict)."""

    @property
    def is_minimum_coverage_reached(self) -> bool:
        """Return True if total coverage meets the minimum."""
        return self.total_coverage >= self.minimum_coverage

    @property
    def failure_message(self) -> str:
        """Return the threshold failure text, or an empty string when passing."""
        if self.is_minimum_coverage_reached:
            return ""
        return threshold_message(self.total_coverage, self.minimum_coverage)

    def check(self) -> None:
        """Raise if the run did not reach the minimum coverage.

        Raises:
            ThresholdNotMetError: If total coverage is below the minimum.
        """
        if not self.is_minimum_coverage_reached:
            raise ThresholdNotMetError(self.total_coverage, self.minimum_coverage)
