"""lcovgate CLI: top-level command group."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

import click
from rich.logging import RichHandler

from lcovgate import __version__
from lcovgate.adapters.lcov import ToolInvocationError
from lcovgate.config import ConfigurationError, default_scratch_directory, load_config
from lcovgate.models.outcome import ThresholdNotMetError, format_percentage
from lcovgate.orchestrator import cleanup_scratch, run_action
from lcovgate.reporters.artifacts import ArtifactUploadError
from lcovgate.reporters.terminal import console, reporter
from lcovgate.utils.actions import error_annotation
from lcovgate.utils.ci_context import detect_run_context

logger = logging.getLogger(__name__)

_LOG_LEVEL_ENV = "LCOVGATE_LOG_LEVEL"


def _configure_logging(*, verbose: bool) -> None:
    """Route log records through rich; ``--verbose`` wins over the environment."""
    level_name = "DEBUG" if verbose else os.environ.get(_LOG_LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger("lcovgate")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=console, show_path=False, markup=False))


def _fail(ctx: click.Context, message: str, *, annotate: bool) -> None:
    """Report a failure through the single failure channel and exit non-zero."""
    reporter.print_error(message)
    if annotate:
        click.echo(error_annotation(message))
    ctx.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="lcovgate")
@click.pass_context
def cli(ctx: click.Context, *, verbose: bool) -> None:
    """lcovgate: merge lcov traces, comment on pull requests, gate on coverage."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose=verbose)


@cli.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML configuration file (default: .lcovgate.yml if present).",
)
@click.option("--coverage-files", default=None, help="Glob pattern of lcov trace files.")
@click.option(
    "--minimum-coverage", type=float, default=None, help="Minimum total coverage percentage."
)
@click.option("--github-token", default=None, help="Token used to comment on pull requests.")
@click.option(
    "--working-directory", default=None, help="Directory the traces were produced in."
)
@click.option("--artifact-name", default=None, help="Name of the HTML report artifact.")
@click.option(
    "--artifact-directory", default=None, help="Where the HTML report is stored for upload."
)
@click.option("--title-prefix", default=None, help="Text placed before the comment title.")
@click.option("--additional-message", default=None, help="Markdown appended to the comment.")
@click.option(
    "--update-comment/--no-update-comment",
    default=None,
    help="Update the previous coverage comment instead of adding a new one.",
)
@click.option(
    "--genhtml-ignore-errors", default=None, help="Passed to genhtml --ignore-errors."
)
@click.option("--scratch-directory", default=None, help="Directory for intermediate files.")
@click.pass_context
def run(ctx: click.Context, config_file: str | None, **options: Any) -> None:
    """Merge coverage, post the pull-request comment and check the minimum.

    Options may also come from GitHub Actions inputs (INPUT_*) or a YAML file.

    Example:
      lcovgate run --coverage-files 'coverage/lcov.*.info' --minimum-coverage 80
    """
    context = detect_run_context()
    try:
        config = load_config(config_file, overrides=options)
        outcome = asyncio.run(run_action(config, context))
    except (ConfigurationError, ToolInvocationError, ArtifactUploadError) as exc:
        _fail(ctx, str(exc), annotate=context.is_github_actions)
        return

    reporter.print_outcome(outcome)
    for pr_number, error in outcome.comment_errors.items():
        reporter.print_warning(f"Coverage comment on PR #{pr_number} failed: {error}")

    try:
        outcome.check()
    except ThresholdNotMetError as exc:
        _fail(ctx, str(exc), annotate=context.is_github_actions)
        return

    total = format_percentage(outcome.total_coverage)
    reporter.print_success(f"Coverage {total}% meets the minimum")


@cli.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML configuration file (default: .lcovgate.yml if present).",
)
@click.option("--scratch-directory", default=None, help="Directory to remove.")
def cleanup(config_file: str | None, scratch_directory: str | None) -> None:
    """Remove the scratch directory of a previous run (never fails)."""
    if scratch_directory is None:
        try:
            scratch_directory = load_config(config_file).scratch_directory
        except ConfigurationError as exc:
            logger.warning("Ignoring configuration error during cleanup: %s", exc)
            scratch_directory = default_scratch_directory()

    if cleanup_scratch(scratch_directory):
        reporter.print_success(f"Removed {scratch_directory}")
    else:
        reporter.print_info(f"Nothing to remove at {scratch_directory}")
