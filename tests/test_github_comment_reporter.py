"""Tests for the pull-request coverage comment (reporters/github_comment.py)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from lcovgate.reporters.github_comment import (
    CommentAction,
    CoverageCommentReporter,
    UpsertPlan,
    build_body,
    build_header,
    comment_marker,
    commit_url,
    plan_upsert,
)
from lcovgate.utils.ci_context import PullRequestRef, RunContext
from lcovgate.utils.github import CommentAPIError

_SHA = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture
def pr() -> PullRequestRef:
    return PullRequestRef(
        number=7,
        head_sha=_SHA,
        owner="octocat",
        repo="hello-world",
        html_url="https://github.com/octocat/hello-world/pull/7",
    )


@pytest.fixture
def context() -> RunContext:
    return RunContext(
        repo_owner="octocat",
        repo_name="hello-world",
        run_id="99",
        run_number="5",
        workflow="CI",
    )


@pytest.fixture
def api() -> MagicMock:
    mock = MagicMock()
    mock.list_comments.return_value = []
    mock.create_comment.return_value = {"id": 1001, "html_url": "https://example.com/c/1001"}
    mock.update_comment.return_value = {"id": 555, "html_url": "https://example.com/c/555"}
    return mock


# ── Marker ───────────────────────────────────────────────────────


class TestCommentMarker:
    def test_hidden_html_comment(self) -> None:
        marker = comment_marker()

        assert marker.startswith("<!-- lcovgate:coverage:")
        assert marker.endswith(" -->")

    def test_stable(self) -> None:
        assert comment_marker("Backend") == comment_marker("Backend")

    def test_differs_per_title_prefix(self) -> None:
        assert comment_marker("Backend") != comment_marker("Frontend")
        assert comment_marker("") != comment_marker("Backend")


# ── Header and body ──────────────────────────────────────────────


class TestBuildHeader:
    def test_links_commit_and_run(self, pr: PullRequestRef, context: RunContext) -> None:
        header = build_header(pr, context)

        assert header == (
            "### LCOV of commit "
            f"[<code>0123456</code>](https://github.com/octocat/hello-world/pull/7/commits/{_SHA})"
            " during [CI #5](https://github.com/octocat/hello-world/actions/runs/99)"
        )

    def test_title_prefix(self, pr: PullRequestRef, context: RunContext) -> None:
        assert build_header(pr, context, "Backend").startswith("### Backend LCOV of commit ")

    def test_without_run(self, pr: PullRequestRef) -> None:
        header = build_header(pr, RunContext())

        assert " during " not in header

    def test_commit_url_without_html_url(self) -> None:
        bare = PullRequestRef(number=3, head_sha=_SHA, owner="o", repo="r")

        assert commit_url(bare, RunContext()) == f"https://github.com/o/r/pull/3/commits/{_SHA}"


class TestBuildBody:
    def test_minimal(self) -> None:
        body = build_body("### H", "Summary coverage rate:", " n/a")

        assert body == "### H\n<pre>Summary coverage rate:\n\nFiles changed coverage rate: n/a</pre>"

    def test_section_order(self) -> None:
        body = build_body(
            "### H",
            "SUMMARY",
            "\n  DETAIL",
            additional_message="EXTRA",
            below_threshold=True,
            threshold_message="TOO LOW",
            artifact_link="https://example.com/artifact",
            marker="<!-- m -->",
        )

        positions = [
            body.index(part)
            for part in (
                "<!-- m -->",
                "### H",
                "SUMMARY",
                "DETAIL",
                "EXTRA",
                ":no_entry: TOO LOW",
                "[Download coverage report](https://example.com/artifact)",
            )
        ]
        assert positions == sorted(positions)
        assert "\n\n---\n\nEXTRA" in body

    def test_threshold_line_only_below_minimum(self) -> None:
        body = build_body("### H", "S", " n/a", threshold_message="TOO LOW")

        assert ":no_entry:" not in body
        assert "TOO LOW" not in body

    def test_blank_additional_message_is_omitted(self) -> None:
        assert "---" not in build_body("### H", "S", " n/a", additional_message="   ")


# ── Upsert decision ──────────────────────────────────────────────


class TestPlanUpsert:
    def test_create_without_update_mode(self) -> None:
        comments = [{"id": 1, "body": "<!-- m -->"}]

        assert plan_upsert(comments, "<!-- m -->", update_mode=False) == UpsertPlan(
            CommentAction.CREATE
        )

    def test_update_first_matching_comment(self) -> None:
        comments = [
            {"id": 1, "body": "unrelated"},
            {"id": 2, "body": "<!-- m -->\nold report"},
            {"id": 3, "body": "<!-- m -->\nolder duplicate"},
        ]

        assert plan_upsert(comments, "<!-- m -->", update_mode=True) == UpsertPlan(
            CommentAction.UPDATE, 2
        )

    def test_create_when_nothing_matches(self) -> None:
        comments = [{"id": 1, "body": None}, {"id": 2, "body": "<!-- other -->"}]

        assert plan_upsert(comments, "<!-- m -->", update_mode=True).action is CommentAction.CREATE


# ── Reporter ─────────────────────────────────────────────────────


class TestCoverageCommentReporter:
    def test_creates_without_listing_when_not_updating(
        self, api: MagicMock, pr: PullRequestRef
    ) -> None:
        reporter = CoverageCommentReporter(api, marker="<!-- m -->", update_mode=False)

        result = reporter.post(pr, "<!-- m -->\nbody")

        api.list_comments.assert_not_called()
        api.create_comment.assert_called_once_with(pr, "<!-- m -->\nbody")
        assert result.action is CommentAction.CREATE
        assert result.comment_id == 1001

    def test_creates_when_no_tracked_comment(self, api: MagicMock, pr: PullRequestRef) -> None:
        api.list_comments.return_value = [{"id": 9, "body": "LGTM"}]
        reporter = CoverageCommentReporter(api, marker="<!-- m -->", update_mode=True)

        reporter.post(pr, "<!-- m -->\nbody")

        api.create_comment.assert_called_once()
        api.update_comment.assert_not_called()

    def test_updates_tracked_comment(self, api: MagicMock, pr: PullRequestRef) -> None:
        api.list_comments.return_value = [{"id": 555, "body": "<!-- m -->\nold"}]
        reporter = CoverageCommentReporter(api, marker="<!-- m -->", update_mode=True)

        result = reporter.post(pr, "<!-- m -->\nnew")

        api.update_comment.assert_called_once_with(pr, 555, "<!-- m -->\nnew")
        api.create_comment.assert_not_called()
        assert result.action is CommentAction.UPDATE
        assert result.url == "https://example.com/c/555"

    def test_adds_missing_marker(self, api: MagicMock, pr: PullRequestRef) -> None:
        reporter = CoverageCommentReporter(api, marker="<!-- m -->")

        reporter.post(pr, "body")

        api.create_comment.assert_called_once_with(pr, "<!-- m -->\nbody")

    def test_api_errors_propagate(self, api: MagicMock, pr: PullRequestRef) -> None:
        api.create_comment.side_effect = CommentAPIError("POST request failed: 403")
        reporter = CoverageCommentReporter(api, marker="<!-- m -->")

        with pytest.raises(CommentAPIError):
            reporter.post(pr, "body")

    def test_changed_files(self, api: MagicMock, pr: PullRequestRef) -> None:
        api.list_changed_files.return_value = ["lib/a.dart"]
        reporter = CoverageCommentReporter(api, marker="<!-- m -->")

        assert reporter.changed_files(pr) == ["lib/a.dart"]
