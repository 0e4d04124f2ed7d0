"""Shared test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
import respx

from pr_automerge.client import GitHubAPIError
from pr_automerge.models import (
    Comment,
    Config,
    MergeMethod,
    PullRequest,
    RepoConfig,
    Review,
    ReviewState,
    StatusState,
)

NOW = datetime(2025, 1, 7, 12, 0, tzinfo=UTC)


class FakePlatform:
    """In-memory platform recording every write."""

    def __init__(self):
        self.open_prs: list[PullRequest] = []
        self.pr_snapshots: list[PullRequest] = []
        self.reviews: list[Review] = []
        self.statuses: dict[str, StatusState] = {}
        self.comments: list[Comment] = []
        self.bot = "automerge-bot"
        self.merge_error: GitHubAPIError | None = None
        self.merge_sha = "mergedsha"
        self.fetch_pr_calls = 0
        self.fetch_reviews_calls = 0
        self.fetch_statuses_calls = 0
        self.added: list[tuple[int, list[str]]] = []
        self.removed: list[tuple[int, str]] = []
        self.posted: list[tuple[int, str]] = []
        self.merges: list[dict] = []

    async def fetch_open_prs(self, repo: str) -> list[PullRequest]:
        return list(self.open_prs)

    async def fetch_pr(self, repo: str, number: int) -> PullRequest:
        self.fetch_pr_calls += 1
        if len(self.pr_snapshots) > 1:
            return self.pr_snapshots.pop(0)
        return self.pr_snapshots[0]

    async def fetch_reviews(self, repo: str, number: int) -> list[Review]:
        self.fetch_reviews_calls += 1
        return list(self.reviews)

    async def fetch_statuses(self, repo: str, sha: str) -> dict[str, StatusState]:
        self.fetch_statuses_calls += 1
        return dict(self.statuses)

    async def fetch_comments(self, repo: str, number: int) -> list[Comment]:
        return list(self.comments)

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> None:
        self.added.append((number, labels))

    async def remove_label(self, repo: str, number: int, label: str) -> None:
        self.removed.append((number, label))

    async def post_comment(self, repo: str, number: int, body: str) -> None:
        self.posted.append((number, body))

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
        if self.merge_error is not None:
            raise self.merge_error
        self.merges.append(
            {
                "number": number,
                "title": title,
                "sha": sha,
                "method": method,
                "message": message,
            }
        )
        return self.merge_sha

    async def bot_identity(self) -> str:
        return self.bot


def make_pr(**overrides) -> PullRequest:
    """Build an open, fresh, described PR snapshot."""
    fields = {
        "id": 13482,
        "number": 1,
        "title": "Add feature",
        "author": "author",
        "head_sha": "somesha",
        "head_ref": "feature",
        "base_ref": "main",
        "updated_at": NOW - timedelta(minutes=5),
        "body": "A description",
        "html_url": "https://github.com/org/repo/pull/1",
    }
    fields.update(overrides)
    return PullRequest(**fields)


def make_repo_config(**overrides) -> RepoConfig:
    fields = {
        "name": "repo",
        "needs_description_label": "needs-description",
        "required_statuses": ["status1"],
        "ci_passed_label": "ci-passed",
        "reviewed_label": "reviewed",
        "block_merge_label": "block-merge",
        "automerge_grace_period": 1,
        "merge_method": "rebase",
    }
    fields.update(overrides)
    return RepoConfig(**fields)


@pytest.fixture
def fake_platform():
    """Platform preloaded with an approval and a passing required status."""
    platform = FakePlatform()
    platform.reviews = [
        Review(reviewer_id="reviewer", state=ReviewState.COMMENTED),
        Review(reviewer_id="reviewer", state=ReviewState.APPROVED),
        Review(reviewer_id="reviewer", state=ReviewState.COMMENTED),
    ]
    platform.statuses = {
        "status1": StatusState.SUCCESS,
        "status2": StatusState.FAILURE,
    }
    return platform


@pytest.fixture
def repo_config():
    return make_repo_config()


@pytest.fixture
def config(repo_config):
    return Config(owner="org", repos=[repo_config])


@pytest.fixture
def mock_github_api():
    """Fixture providing a respx mock router for GitHub API."""
    with respx.mock(base_url="https://api.github.com") as respx_mock:
        yield respx_mock


@pytest.fixture
def sample_pr_response():
    """Sample PR API response."""
    return {
        "id": 9001,
        "number": 123,
        "title": "Test PR",
        "state": "open",
        "draft": False,
        "body": "Fixes things <!-- template hint -->",
        "user": {"login": "testuser", "id": 1},
        "head": {"sha": "abc123def456", "ref": "feature"},
        "base": {"ref": "main"},
        "labels": [{"name": "bug", "color": "ff0000"}],
        "requested_reviewers": [{"login": "reviewer", "id": 2}],
        "html_url": "https://github.com/owner/repo/pull/123",
        "mergeable_state": "clean",
        "updated_at": "2025-01-07T12:00:00Z",
    }


@pytest.fixture
def sample_reviews_response():
    """Sample reviews API response."""
    return [
        {
            "id": 1,
            "user": {"login": "reviewer1"},
            "state": "APPROVED",
            "submitted_at": "2025-01-07T10:00:00Z",
        },
        {
            "id": 2,
            "user": {"login": "reviewer2"},
            "state": "CHANGES_REQUESTED",
            "submitted_at": "2025-01-07T11:00:00Z",
        },
    ]


@pytest.fixture
def sample_commit_status_response():
    """Sample commit status API response."""
    return {
        "state": "failure",
        "statuses": [
            {"context": "lint", "state": "success"},
            {"context": "test", "state": "failure"},
        ],
        "sha": "abc123def456",
        "total_count": 2,
    }


@pytest.fixture
def sample_check_runs_response():
    """Sample check runs API response."""
    return {
        "total_count": 3,
        "check_runs": [
            {
                "id": 1,
                "name": "build",
                "status": "completed",
                "conclusion": "success",
            },
            {
                "id": 2,
                "name": "docs",
                "status": "in_progress",
                "conclusion": None,
            },
            {
                "id": 3,
                "name": "test",
                "status": "completed",
                "conclusion": "success",
            },
        ],
    }
