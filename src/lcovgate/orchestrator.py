"""Run orchestration: merge, report, comment and gate.

Sequence for one run:

1. validate the configuration and resolve the trace-file glob
2. render the HTML report and hand it to the artifact store (if named)
3. merge the traces and compute the total coverage
4. record the run outputs
5. post the coverage comment to every associated pull request
6. return the outcome; the caller turns it into an exit status
"""

from __future__ import annotations

import glob
import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from lcovgate.adapters.lcov import LcovTool
from lcovgate.adapters.tracefile import total_coverage
from lcovgate.analyzers.changed_files import filter_to_changed_files
from lcovgate.config import ConfigurationError, require_valid
from lcovgate.models.outcome import ActionOutcome, floor_percentage
from lcovgate.reporters.artifacts import DirectoryArtifactStore, collect_files
from lcovgate.reporters.github_comment import (
    CoverageCommentReporter,
    build_body,
    build_header,
    comment_marker,
)
from lcovgate.utils.actions import append_step_summary, set_output
from lcovgate.utils.github import CommentAPIError, GitHubAPI
from lcovgate.utils.versions import select_branch_coverage_flag

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from lcovgate.config import ActionConfig
    from lcovgate.reporters.artifacts import ArtifactStore
    from lcovgate.utils.ci_context import PullRequestRef, RunContext

logger = logging.getLogger(__name__)

MERGED_TRACE_NAME = "lcov.info"
HTML_REPORT_DIR = "html"

OUTPUT_TOTAL_COVERAGE = "total-coverage"
OUTPUT_ARTIFACT_ID = "artifact-id"


def resolve_coverage_files(pattern: str, *, root: Path | None = None) -> list[Path]:
    """Expand a newline-separated list of glob patterns into trace files.

    Relative patterns are resolved against *root* (default: current directory).
    ``**`` matches across directories.

    Raises:
        ConfigurationError: If no pattern matches a file.
    """
    base = root or Path.cwd()
    found: dict[Path, None] = {}
    for raw in pattern.splitlines():
        entry = raw.strip()
        if not entry:
            continue
        matches = glob.glob(entry, root_dir=base, recursive=True)
        for match in sorted(matches):
            path = (base / match).resolve()
            if path.is_file():
                found.setdefault(path, None)

    if not found:
        raise ConfigurationError(f"No coverage files match {pattern!r}")

    logger.info("Found %d coverage file(s)", len(found))
    return list(found)


def cleanup_scratch(directory: str | Path) -> bool:
    """Remove the scratch directory left by a run.

    Returns:
        True if something was removed. A missing directory is not an error.
    """
    path = Path(directory)
    if not path.exists():
        logger.debug("Nothing to clean up at %s", path)
        return False
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning("Unable to remove %s: %s", path, exc)
        return False
    logger.info("Removed %s", path)
    return True


class CoverageRun:
    """One coverage run against a fixed configuration and CI context."""

    def __init__(
        self,
        config: ActionConfig,
        context: RunContext,
        *,
        tool: LcovTool | None = None,
        artifact_store: ArtifactStore | None = None,
        api_factory: Callable[..., GitHubAPI] = GitHubAPI,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._tool = tool or LcovTool()
        self._artifact_store = artifact_store or DirectoryArtifactStore(
            Path(config.artifact_directory)
        )
        self._api_factory = api_factory
        self._env = env
        self._scratch = Path(config.scratch_directory)

    async def execute(self) -> ActionOutcome:
        """Run every step and return the outcome.

        Raises:
            ConfigurationError: If the configuration is invalid or no trace file matches.
            ToolInvocationError: If lcov or genhtml fails.
            ArtifactUploadError: If the HTML report cannot be stored.
        """
        config = require_valid(self._config)
        trace_files = resolve_coverage_files(config.coverage_files)
        self._scratch.mkdir(parents=True, exist_ok=True)

        flag = select_branch_coverage_flag(await self._tool.version())

        artifact_id = await self._publish_report(trace_files, flag)

        merged = await self._tool.merge(trace_files, self._scratch / MERGED_TRACE_NAME, flag)
        outcome = ActionOutcome(
            total_coverage=total_coverage(merged),
            minimum_coverage=config.minimum_coverage,
            artifact_id=artifact_id,
        )

        set_output(
            OUTPUT_TOTAL_COVERAGE, str(floor_percentage(outcome.total_coverage)), self._env
        )
        if artifact_id:
            set_output(OUTPUT_ARTIFACT_ID, artifact_id, self._env)

        summary = await self._tool.summarize(merged, flag)
        logger.info("Coverage summary:\n%s", summary)
        append_step_summary(f"### LCOV coverage summary\n<pre>{summary}</pre>\n", self._env)

        await self._post_comments(outcome, merged, summary, flag)
        return outcome

    async def _publish_report(self, trace_files: list[Path], flag: str) -> str | None:
        if not self._config.artifact_name:
            logger.info("No artifact name, skipping HTML report")
            return None

        html_dir = self._scratch / HTML_REPORT_DIR
        await self._tool.genhtml(
            trace_files,
            html_dir,
            flag,
            cwd=Path(self._config.working_directory),
            ignore_errors=self._config.genhtml_ignore_errors,
        )
        return self._artifact_store.upload(
            self._config.artifact_name, collect_files(html_dir), html_dir
        )

    def _artifact_link(self, artifact_id: str | None) -> str:
        if not artifact_id or not self._context.run_id:
            return ""
        return self._context.artifact_url(artifact_id)

    async def _post_comments(
        self, outcome: ActionOutcome, merged: Path, summary: str, flag: str
    ) -> None:
        config = self._config
        if not config.comments_enabled:
            logger.info("No GitHub token, not posting a comment")
            return
        if not self._context.pull_requests:
            logger.info("No pull request associated with %r, not posting", self._context.event_name)
            return

        listing = await self._tool.list_detail(merged, flag)
        marker = comment_marker(config.title_prefix)
        reporter = CoverageCommentReporter(
            self._api_factory(config.github_token, base_url=self._context.api_url),
            marker=marker,
            update_mode=config.update_comment,
        )

        for pr in self._context.pull_requests:
            logger.info("Reporting coverage for PR #%d, sha %s", pr.number, pr.head_sha)
            try:
                body = self._compose(reporter, pr, outcome, summary, listing, marker)
                outcome.comments.append(reporter.post(pr, body))
            except CommentAPIError as exc:
                logger.error("Unable to post coverage report to PR #%d: %s", pr.number, exc)
                outcome.comment_errors[pr.number] = str(exc)

    def _compose(
        self,
        reporter: CoverageCommentReporter,
        pr: PullRequestRef,
        outcome: ActionOutcome,
        summary: str,
        listing: list[str],
        marker: str,
    ) -> str:
        config = self._config
        detail = filter_to_changed_files(
            listing,
            reporter.changed_files(pr),
            config.working_directory,
            repo_root=self._context.workspace or Path.cwd(),
        )
        body = build_body(
            build_header(pr, self._context, config.title_prefix),
            summary,
            detail,
            additional_message=config.additional_message,
            below_threshold=not outcome.is_minimum_coverage_reached,
            threshold_message=outcome.failure_message,
            artifact_link=self._artifact_link(outcome.artifact_id),
            marker=marker,
        )
        logger.debug("Comment body for PR #%d:\n%s", pr.number, body)
        return body


async def run_action(
    config: ActionConfig,
    context: RunContext,
    *,
    tool: LcovTool | None = None,
    artifact_store: ArtifactStore | None = None,
    api_factory: Callable[..., GitHubAPI] = GitHubAPI,
    env: Mapping[str, str] | None = None,
) -> ActionOutcome:
    """Execute one coverage run; see :class:`CoverageRun`."""
    run = CoverageRun(
        config,
        context,
        tool=tool,
        artifact_store=artifact_store,
        api_factory=api_factory,
        env=env,
    )
    return await run.execute()
