"""CI run context detection.

Everything the run needs to know about the hosting CI job is read once into a
:class:`RunContext` and passed explicitly to the components that need it.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

# Expected number of parts when splitting "owner/repo"
_OWNER_REPO_PARTS = 2

_DEFAULT_SERVER_URL = "https://github.com"
_DEFAULT_API_URL = "https://api.github.com"

_PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})
_WORKFLOW_RUN_EVENT = "workflow_run"

_PR_API_URL_RE = re.compile(r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pulls/")


@dataclass(frozen=True)
class PullRequestRef:
    """A pull request associated with the run."""

    number: int
    """Pull request number."""

    head_sha: str
    """SHA of the pull request's head commit."""

    owner: str
    """Repository owner (org or user)."""

    repo: str
    """Repository name."""

    html_url: str = ""
    """Web URL of the pull request, if known."""

    @property
    def short_sha(self) -> str:
        """Return the seven-character abbreviated head SHA."""
        return self.head_sha[:7]


@dataclass
class RunContext:
    """Detected CI execution context."""

    event_name: str = ""
    """Name of the triggering event (``pull_request``, ``workflow_run``, ...)."""

    repo_owner: str = ""
    """Owner of the repository the workflow runs in."""

    repo_name: str = ""
    """Name of the repository the workflow runs in."""

    run_id: str = ""
    """Unique id of the workflow run."""

    run_number: str = ""
    """Sequential run number of the workflow."""

    workflow: str = ""
    """Workflow name."""

    sha: str = ""
    """Commit SHA that triggered the run."""

    workspace: str = ""
    """Absolute path of the checked-out repository."""

    server_url: str = _DEFAULT_SERVER_URL
    """Web URL of the GitHub server."""

    api_url: str = _DEFAULT_API_URL
    """REST API URL of the GitHub server."""

    is_github_actions: bool = False
    """Running inside GitHub Actions."""

    pull_requests: list[PullRequestRef] = field(default_factory=list)
    """Pull requests the run reports to (may be empty)."""

    @property
    def repository_url(self) -> str:
        """Return the web URL of the repository."""
        return f"{self.server_url}/{self.repo_owner}/{self.repo_name}"

    @property
    def run_url(self) -> str:
        """Return the web URL of the workflow run."""
        return f"{self.repository_url}/actions/runs/{self.run_id}"

    def artifact_url(self, artifact_id: str) -> str:
        """Return the download URL of an artifact of this run.

        GitHub serves ``/artifacts/<id>`` only for numeric ids; an artifact
        known by name alone links to the run page, which lists its artifacts.
        """
        if artifact_id.isdigit():
            return f"{self.run_url}/artifacts/{artifact_id}"
        return self.run_url


def _parse_int(value: Any) -> int | None:
    """Parse a value to int, return None if invalid."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _load_event_payload(event_path: str) -> dict[str, Any]:
    """Read the JSON event payload GitHub Actions writes for the run."""
    if not event_path:
        return {}
    try:
        parsed = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Unable to read event payload %s: %s", event_path, exc)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def owner_repo_from_url(url: str) -> tuple[str, str] | None:
    """Parse ``(owner, repo)`` from a pull request API URL."""
    match = _PR_API_URL_RE.search(url or "")
    if not match:
        return None
    return match.group("owner"), match.group("repo")


def _pull_request_ref(
    raw: Mapping[str, Any], default_owner: str, default_repo: str
) -> PullRequestRef | None:
    number = _parse_int(raw.get("number"))
    head = raw.get("head")
    head_sha = head.get("sha", "") if isinstance(head, dict) else ""
    if number is None or not head_sha:
        return None

    owner, repo = owner_repo_from_url(str(raw.get("url", ""))) or (default_owner, default_repo)
    return PullRequestRef(
        number=number,
        head_sha=str(head_sha),
        owner=owner,
        repo=repo,
        html_url=str(raw.get("html_url", "")),
    )


def pull_requests_from_event(
    event_name: str,
    payload: Mapping[str, Any],
    env: Mapping[str, str],
    *,
    owner: str,
    repo: str,
) -> list[PullRequestRef]:
    """Return the pull requests the run should report to.

    - ``pull_request``/``pull_request_target``: the payload's pull request.
    - ``workflow_run``: every pull request of the completed upstream run.
    - anything else: ``PR_NUMBER`` + ``PR_SHA`` environment variables, if set.
    """
    raw_prs: list[Any] = []
    if event_name in _PULL_REQUEST_EVENTS:
        raw_prs = [payload.get("pull_request") or {}]
    elif event_name == _WORKFLOW_RUN_EVENT:
        workflow_run = payload.get("workflow_run") or {}
        raw_prs = list(workflow_run.get("pull_requests") or [])

    refs = [
        ref
        for raw in raw_prs
        if isinstance(raw, dict) and (ref := _pull_request_ref(raw, owner, repo)) is not None
    ]
    if refs:
        return refs

    pr_number = _parse_int(env.get("PR_NUMBER", "").strip())
    pr_sha = env.get("PR_SHA", "").strip()
    if pr_number is not None and pr_sha:
        return [PullRequestRef(number=pr_number, head_sha=pr_sha, owner=owner, repo=repo)]

    return []


def detect_run_context(env: Mapping[str, str] | None = None) -> RunContext:
    """Detect the run context from GitHub Actions environment variables.

    Args:
        env: Environment to read; defaults to ``os.environ``.

    Returns:
        RunContext with detected values. Outside GitHub Actions most fields are empty.
    """
    env = os.environ if env is None else env

    repo_full = env.get("GITHUB_REPOSITORY", "")
    repo_parts = repo_full.split("/") if repo_full else []
    owner = repo_parts[0] if len(repo_parts) == _OWNER_REPO_PARTS else ""
    repo = repo_parts[1] if len(repo_parts) == _OWNER_REPO_PARTS else ""

    event_name = env.get("GITHUB_EVENT_NAME", "")
    payload = _load_event_payload(env.get("GITHUB_EVENT_PATH", ""))

    context = RunContext(
        event_name=event_name,
        repo_owner=owner,
        repo_name=repo,
        run_id=env.get("GITHUB_RUN_ID", ""),
        run_number=env.get("GITHUB_RUN_NUMBER", ""),
        workflow=env.get("GITHUB_WORKFLOW", ""),
        sha=env.get("GITHUB_SHA", ""),
        workspace=env.get("GITHUB_WORKSPACE", ""),
        server_url=env.get("GITHUB_SERVER_URL", _DEFAULT_SERVER_URL).rstrip("/"),
        api_url=env.get("GITHUB_API_URL", _DEFAULT_API_URL).rstrip("/"),
        is_github_actions=env.get("GITHUB_ACTIONS") == "true",
        pull_requests=pull_requests_from_event(event_name, payload, env, owner=owner, repo=repo),
    )

    logger.debug(
        "Run context: event=%s repo=%s/%s run=%s prs=%s",
        context.event_name,
        context.repo_owner,
        context.repo_name,
        context.run_id,
        [pr.number for pr in context.pull_requests],
    )
    return context
