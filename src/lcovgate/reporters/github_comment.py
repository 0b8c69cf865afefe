"""Coverage summary comments on GitHub pull requests.

This module:
1. Composes the comment body (header, summary, changed-file detail, extras)
2. Decides whether to create a new comment or update the tracked one
3. Executes that decision through the GitHub API
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lcovgate.utils.ci_context import PullRequestRef, RunContext
    from lcovgate.utils.github import GitHubAPI

logger = logging.getLogger(__name__)

_MARKER_PREFIX = "lcovgate:coverage"
_MARKER_HASH_LENGTH = 8


# ── Composition ──────────────────────────────────────────────────


def comment_marker(title_prefix: str = "") -> str:
    """Return the hidden HTML marker that identifies this tool's comment.

    The marker is derived from *title_prefix* so that several reports posted
    to the same pull request (one per title prefix) are tracked separately.
    """
    digest = hashlib.sha256(f"{_MARKER_PREFIX}:{title_prefix}".encode()).hexdigest()
    return f"<!-- {_MARKER_PREFIX}:{digest[:_MARKER_HASH_LENGTH]} -->"


def commit_url(pr: PullRequestRef, context: RunContext) -> str:
    """Return the web URL of the pull request's head commit."""
    pr_url = pr.html_url or f"{context.server_url}/{pr.owner}/{pr.repo}/pull/{pr.number}"
    return f"{pr_url}/commits/{pr.head_sha}"


def build_header(pr: PullRequestRef, context: RunContext, title_prefix: str = "") -> str:
    """Render the heading line with commit and workflow-run links."""
    prefix = f"{title_prefix.strip()} " if title_prefix.strip() else ""
    header = (
        f"### {prefix}LCOV of commit "
        f"[<code>{pr.short_sha}</code>]({commit_url(pr, context)})"
    )
    if context.run_id:
        workflow = context.workflow or "workflow"
        run_label = f"{workflow} #{context.run_number}" if context.run_number else workflow
        header += f" during [{run_label}]({context.run_url})"
    return header


def build_body(
    header: str,
    summary: str,
    detail: str,
    *,
    additional_message: str = "",
    below_threshold: bool = False,
    threshold_message: str = "",
    artifact_link: str = "",
    marker: str = "",
) -> str:
    """Assemble the full comment body.

    The order is fixed: marker and header, summary block, changed-file detail,
    the caller's extra message, the threshold warning (only when coverage is
    below the minimum), then the report download link (only when a report
    artifact exists).
    """
    sections = [header, f"<pre>{summary}\n\nFiles changed coverage rate:{detail}</pre>"]
    if marker:
        sections.insert(0, marker)
    body = "\n".join(sections)

    if additional_message.strip():
        body += f"\n\n---\n\n{additional_message.strip()}"

    if below_threshold:
        body += f"\n\n:no_entry: {threshold_message}".rstrip()

    if artifact_link:
        body += f"\n\n[Download coverage report]({artifact_link})"

    return body


# ── Upsert decision ──────────────────────────────────────────────


class CommentAction(Enum):
    """What the reporter does with a pull request's coverage comment."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class UpsertPlan:
    """Outcome of searching for the tracked comment."""

    action: CommentAction
    """Create a new comment or update an existing one."""

    comment_id: int | None = None
    """ID of the comment to update (UPDATE only)."""


def plan_upsert(
    comments: Iterable[dict[str, Any]], marker: str, *, update_mode: bool
) -> UpsertPlan:
    """Decide between creating a comment and updating the tracked one.

    Without update mode the answer is always CREATE. Otherwise the first
    comment, in listing order, whose body contains *marker* is updated.
    """
    if not update_mode:
        return UpsertPlan(CommentAction.CREATE)

    for comment in comments:
        if marker in (comment.get("body") or ""):
            return UpsertPlan(CommentAction.UPDATE, int(comment["id"]))

    return UpsertPlan(CommentAction.CREATE)


@dataclass
class CommentResult:
    """Result of posting the coverage comment to one pull request."""

    pr_number: int
    """Pull request the comment was posted to."""

    action: CommentAction
    """Whether the comment was created or updated."""

    comment_id: int | None = None
    """ID of the created/updated comment."""

    url: str = ""
    """Web URL of the comment."""


# ── Reporter ─────────────────────────────────────────────────────


class CoverageCommentReporter:
    """Posts the coverage comment to pull requests, creating or updating it."""

    def __init__(self, api: GitHubAPI, *, marker: str, update_mode: bool = False) -> None:
        """Initialize the reporter.

        Args:
            api: Authenticated GitHub API client.
            marker: Hidden marker included in (and used to find) the comment.
            update_mode: Update the tracked comment instead of always creating one.
        """
        self._api = api
        self._marker = marker
        self._update_mode = update_mode

    def changed_files(self, pr: PullRequestRef) -> list[str]:
        """Return the files changed by *pr*.

        Raises:
            CommentAPIError: If the API request fails.
        """
        files = self._api.list_changed_files(pr)
        logger.debug("PR #%d changes %d file(s)", pr.number, len(files))
        return files

    def post(self, pr: PullRequestRef, body: str) -> CommentResult:
        """Create or update the coverage comment on *pr*.

        Raises:
            CommentAPIError: If listing, creating or updating fails.
        """
        if self._marker not in body:
            body = f"{self._marker}\n{body}"

        if self._update_mode:
            plan = plan_upsert(self._api.list_comments(pr), self._marker, update_mode=True)
        else:
            plan = UpsertPlan(CommentAction.CREATE)

        if plan.action is CommentAction.UPDATE and plan.comment_id is not None:
            logger.info("Updating comment %d on PR #%d", plan.comment_id, pr.number)
            response = self._api.update_comment(pr, plan.comment_id, body)
        else:
            logger.info("Creating comment on PR #%d", pr.number)
            response = self._api.create_comment(pr, body)

        return CommentResult(
            pr_number=pr.number,
            action=plan.action,
            comment_id=response.get("id", plan.comment_id),
            url=response.get("html_url", ""),
        )
