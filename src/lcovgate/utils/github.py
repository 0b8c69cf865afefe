"""GitHub REST API client for pull-request comments and changed files."""

from __future__ import annotations

import logging
from typing import Any

import requests

from lcovgate.utils.ci_context import PullRequestRef

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"

_REQUEST_TIMEOUT = 30
_PAGE_SIZE = 100


class CommentAPIError(Exception):
    """Exception raised when a GitHub pull-request API operation fails."""


class GitHubAPI:
    """Client for the few GitHub endpoints the coverage comment needs.

    Handles authentication, pagination and error wrapping. Every call is a
    single attempt; retries are left to the surrounding CI platform.
    """

    def __init__(self, token: str, *, base_url: str = GITHUB_API_BASE) -> None:
        """Initialize the GitHub API client.

        Args:
            token: GitHub token with ``pull-requests: write`` permission.
            base_url: REST API root, overridable for GitHub Enterprise Server.

        Raises:
            CommentAPIError: If the token is empty.
        """
        if not token:
            raise CommentAPIError("GitHub token required to access pull requests.")

        self._base_url = base_url.rstrip("/")
        self._session_headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _repo_url(self, pr: PullRequestRef) -> str:
        return f"{self._base_url}/repos/{pr.owner}/{pr.repo}"

    def list_comments(self, pr: PullRequestRef) -> list[dict[str, Any]]:
        """List every issue comment on a pull request, oldest first.

        Raises:
            CommentAPIError: If the API request fails.
        """
        url = f"{self._repo_url(pr)}/issues/{pr.number}/comments"
        return self._get_paginated(url)

    def create_comment(self, pr: PullRequestRef, body: str) -> dict[str, Any]:
        """Create a new comment on a pull request.

        Args:
            pr: Pull request to comment on.
            body: Comment body (markdown formatted).

        Returns:
            GitHub API response as a dictionary.

        Raises:
            CommentAPIError: If the API request fails.
        """
        url = f"{self._repo_url(pr)}/issues/{pr.number}/comments"

        result: dict[str, Any] = self._post(url, {"body": body})
        return result

    def update_comment(self, pr: PullRequestRef, comment_id: int, body: str) -> dict[str, Any]:
        """Replace the body of an existing comment.

        Args:
            pr: Pull request the comment belongs to.
            comment_id: ID of the comment to update.
            body: New comment body (markdown formatted).

        Returns:
            GitHub API response as a dictionary.

        Raises:
            CommentAPIError: If the API request fails.
        """
        url = f"{self._repo_url(pr)}/issues/comments/{comment_id}"

        result: dict[str, Any] = self._patch(url, {"body": body})
        return result

    def list_changed_files(self, pr: PullRequestRef) -> list[str]:
        """Return the repo-relative names of the files changed by a pull request.

        Raises:
            CommentAPIError: If the API request fails.
        """
        url = f"{self._repo_url(pr)}/pulls/{pr.number}/files"
        files = self._get_paginated(url)
        return [str(f["filename"]) for f in files if isinstance(f, dict) and "filename" in f]

    def _get_paginated(self, url: str) -> list[dict[str, Any]]:
        """Follow ``Link: rel="next"`` headers and concatenate every page.

        Raises:
            CommentAPIError: If any request fails.
        """
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        params: dict[str, Any] | None = {"per_page": _PAGE_SIZE}

        while next_url:
            try:
                response = requests.get(
                    next_url,
                    params=params,
                    headers=self._session_headers,
                    timeout=_REQUEST_TIMEOUT,
                )
                response.raise_for_status()
                page = response.json()
            except (requests.RequestException, ValueError) as exc:
                raise CommentAPIError(f"GET request failed: {exc}") from exc

            if not isinstance(page, list):
                raise CommentAPIError(f"GET {next_url} returned {type(page).__name__}, not a list")
            items.extend(page)

            # The next link already carries the query string.
            next_url = response.links.get("next", {}).get("url")
            params = None

        return items

    def _post(self, url: str, data: dict[str, Any]) -> Any:
        """Make a POST request to the GitHub API.

        Raises:
            CommentAPIError: If the request fails.
        """
        try:
            response = requests.post(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CommentAPIError(f"POST request failed: {exc}") from exc

    def _patch(self, url: str, data: dict[str, Any]) -> Any:
        """Make a PATCH request to the GitHub API.

        Raises:
            CommentAPIError: If the request fails.
        """
        try:
            response = requests.patch(
                url, json=data, headers=self._session_headers, timeout=_REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise CommentAPIError(f"PATCH request failed: {exc}") from exc
