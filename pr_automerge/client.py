"""Async GitHub API client implementing the platform interface."""

import asyncio
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .errors import AutomergeError, MalformedInputError
from .models import (
    Comment,
    MergeMethod,
    PRState,
    PullRequest,
    Review,
    ReviewState,
    StatusState,
)

logger = logging.getLogger(__name__)

PER_PAGE = 100

# Check run conclusions that count as a passing status
PASSING_CONCLUSIONS = frozenset({"success", "neutral", "skipped"})


class GitHubAPIError(AutomergeError):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientPlatformError(GitHubAPIError):
    """Raised for network failures and server errors that may succeed later."""


class RateLimitError(TransientPlatformError):
    """Raised when GitHub rate limit is exceeded."""

    def __init__(self, reset_time: int):
        super().__init__(f"Rate limit exceeded. Resets at {reset_time}", 403)
        self.reset_time = reset_time


def parse_pull_request(data: dict[str, Any]) -> PullRequest:
    """Build a PR snapshot from a pulls API payload."""
    try:
        return PullRequest(
            id=data["id"],
            number=data["number"],
            title=data.get("title") or "",
            author=data["user"]["login"],
            head_sha=data["head"]["sha"],
            head_ref=data["head"].get("ref", ""),
            base_ref=(data.get("base") or {}).get("ref", ""),
            is_draft=data.get("draft", False),
            state=PRState(data["state"]),
            updated_at=data["updated_at"],
            labels=frozenset(label["name"] for label in data.get("labels") or []),
            body=data.get("body"),
            requested_reviewers=tuple(
                user["login"] for user in data.get("requested_reviewers") or []
            ),
            html_url=data.get("html_url", ""),
            mergeable_state=data.get("mergeable_state"),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise MalformedInputError(f"Unparseable pull request payload: {e}") from e


def parse_review(data: dict[str, Any]) -> Review:
    """Build a review from a reviews API payload."""
    try:
        return Review(
            reviewer_id=data["user"]["login"],
            state=ReviewState(data["state"]),
            submitted_at=data.get("submitted_at"),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise MalformedInputError(f"Unparseable review payload: {e}") from e


def parse_comment(data: dict[str, Any]) -> Comment:
    """Build a comment from an issue comments API payload."""
    try:
        return Comment(
            author=data["user"]["login"],
            body=data.get("body") or "",
            created_at=data.get("created_at"),
        )
    except (KeyError, TypeError, ValidationError) as e:
        raise MalformedInputError(f"Unparseable comment payload: {e}") from e


def check_run_state(check_run: dict[str, Any]) -> StatusState:
    """Map a check run onto the commit status states."""
    if check_run.get("status") != "completed":
        return StatusState.PENDING
    if check_run.get("conclusion") in PASSING_CONCLUSIONS:
        return StatusState.SUCCESS
    return StatusState.FAILURE


class GitHubClient:
    """Async client for GitHub REST API."""

    BASE_URL = "https://api.github.com"

    def __init__(self, owner: str, token: str | None = None):
        self.owner = owner
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self._client: httpx.AsyncClient | None = None
        self._bot_identity: str | None = None
        self._bot_identity_lock = asyncio.Lock()

    @property
    def headers(self) -> dict[str, str]:
        """Return headers for API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @property
    def is_authenticated(self) -> bool:
        """Check if client has authentication token."""
        return self.token is not None

    async def __aenter__(self) -> "GitHubClient":
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers=self.headers,
            timeout=30.0,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()

    def _repo_path(self, repo: str) -> str:
        return f"/repos/{self.owner}/{repo}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Make an API request with error handling."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise TransientPlatformError(f"Network error: {e}") from e

        # Handle rate limiting
        if response.status_code == 403:
            remaining = response.headers.get("x-ratelimit-remaining", "0")
            if remaining == "0":
                reset_time = int(response.headers.get("x-ratelimit-reset", "0"))
                raise RateLimitError(reset_time)

        if response.status_code == 404:
            raise GitHubAPIError(f"Resource not found: {path}", 404)

        if response.status_code >= 500:
            raise TransientPlatformError(
                f"Server error: {response.text}", response.status_code
            )

        if response.status_code >= 400:
            raise GitHubAPIError(f"API error: {response.text}", response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _paginate(
        self, path: str, key: str | None = None, **params: Any
    ) -> list[dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            data = await self._request(
                "GET", path, params={**params, "per_page": PER_PAGE, "page": page}
            )
            batch = (data or {}).get(key, []) if key else (data or [])
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
            page += 1
        return items

    async def fetch_open_prs(self, repo: str) -> list[PullRequest]:
        """
        Get the open pull requests of a repository, most recently updated first.

        Only the first page is fetched: PRs that have not been updated for a
        while are inactive and would not be acted on anyway.
        """
        data = await self._request(
            "GET",
            f"{self._repo_path(repo)}/pulls",
            params={
                "state": "open",
                "sort": "updated",
                "direction": "desc",
                "per_page": PER_PAGE,
            },
        )
        prs: list[PullRequest] = []
        for item in data or []:
            try:
                prs.append(parse_pull_request(item))
            except MalformedInputError as e:
                logger.warning("Skipping pull request in %s: %s", repo, e)
        return prs

    async def fetch_pr(self, repo: str, number: int) -> PullRequest:
        """Get a fresh snapshot of a single pull request."""
        data = await self._request("GET", f"{self._repo_path(repo)}/pulls/{number}")
        return parse_pull_request(data)

    async def fetch_reviews(self, repo: str, number: int) -> list[Review]:
        """Get all reviews for a PR in submission order (handles pagination)."""
        raw = await self._paginate(f"{self._repo_path(repo)}/pulls/{number}/reviews")
        reviews: list[Review] = []
        for item in raw:
            try:
                reviews.append(parse_review(item))
            except MalformedInputError as e:
                logger.warning("Skipping review on %s#%d: %s", repo, number, e)
        return reviews

    async def fetch_statuses(self, repo: str, sha: str) -> dict[str, StatusState]:
        """
        Get the state of every status and check run reported for a commit.

        Commit statuses take precedence over check runs with the same name.
        """
        combined, check_runs = await asyncio.gather(
            self._request("GET", f"{self._repo_path(repo)}/commits/{sha}/status"),
            self._paginate(
                f"{self._repo_path(repo)}/commits/{sha}/check-runs", key="check_runs"
            ),
        )

        statuses: dict[str, StatusState] = {}
        for check_run in check_runs:
            name = check_run.get("name")
            if name:
                statuses[name] = check_run_state(check_run)

        for status in (combined or {}).get("statuses", []):
            try:
                statuses[status["context"]] = StatusState(status["state"])
            except (KeyError, ValueError) as e:
                logger.warning("Skipping commit status on %s: %r", sha, e)
        return statuses

    async def fetch_comments(self, repo: str, number: int) -> list[Comment]:
        """Get all issue comments of a PR in chronological order."""
        raw = await self._paginate(f"{self._repo_path(repo)}/issues/{number}/comments")
        comments: list[Comment] = []
        for item in raw:
            try:
                comments.append(parse_comment(item))
            except MalformedInputError as e:
                logger.warning("Skipping comment on %s#%d: %s", repo, number, e)
        return comments

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> None:
        await self._request(
            "POST",
            f"{self._repo_path(repo)}/issues/{number}/labels",
            json={"labels": labels},
        )

    async def remove_label(self, repo: str, number: int, label: str) -> None:
        await self._request(
            "DELETE",
            f"{self._repo_path(repo)}/issues/{number}/labels/{quote(label, safe='')}",
        )

    async def post_comment(self, repo: str, number: int, body: str) -> None:
        await self._request(
            "POST",
            f"{self._repo_path(repo)}/issues/{number}/comments",
            json={"body": body},
        )

    async def merge(
        self,
        repo: str,
        number: int,
        *,
        title: str,
        sha: str,
        method: MergeMethod,
        message: str,
    ) -> str:
        """Merge a PR, returning the SHA of the resulting commit."""
        data = await self._request(
            "PUT",
            f"{self._repo_path(repo)}/pulls/{number}/merge",
            json={
                "commit_title": title,
                "commit_message": message,
                "sha": sha,
                "merge_method": method.value,
            },
        )
        return (data or {}).get("sha") or ""

    async def bot_identity(self) -> str:
        """Login of the authenticated user, fetched once and cached."""
        if self._bot_identity is not None:
            return self._bot_identity
        async with self._bot_identity_lock:
            if self._bot_identity is None:
                data = await self._request("GET", "/user")
                self._bot_identity = data["login"]
                logger.debug("Authenticated as '%s'", self._bot_identity)
        return self._bot_identity
