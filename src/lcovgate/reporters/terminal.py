"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from lcovgate.models.outcome import floor_percentage

if TYPE_CHECKING:
    from lcovgate.models.outcome import ActionOutcome

console = Console()

_GOOD_RATE = 80.0


def _coverage_color(rate: float, minimum: float) -> str:
    """Return a Rich color name for a coverage percentage."""
    if rate < minimum:
        return "red"
    if rate >= _GOOD_RATE:
        return "green"
    return "yellow"


class CLIReporter:
    """Rich terminal output for a coverage run."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[blue]i[/blue] {message}")

    def print_outcome(self, outcome: ActionOutcome) -> None:
        """Print the coverage verdict and where the comment went."""
        color = _coverage_color(outcome.total_coverage, outcome.minimum_coverage)
        total = floor_percentage(outcome.total_coverage)

        table = Table(title="Coverage", show_header=False)
        table.add_column("Metric", style="bold")
        table.add_column("Value")
        table.add_row("Total", f"[{color}]{total:.2f}%[/{color}]")
        table.add_row("Minimum", f"{outcome.minimum_coverage:.2f}%")
        if outcome.artifact_id:
            table.add_row("Report artifact", outcome.artifact_id)
        for comment in outcome.comments:
            table.add_row(
                f"PR #{comment.pr_number}",
                f"{comment.action.value}d {comment.url}".rstrip(),
            )
        for pr_number, error in outcome.comment_errors.items():
            table.add_row(f"PR #{pr_number}", f"[red]{error}[/red]")
        self.console.print(table)


reporter = CLIReporter()
