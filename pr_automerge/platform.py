"""Interface to the code-hosting platform consumed by the triage core."""

from typing import Protocol

from .models import Comment, MergeMethod, PullRequest, Review, StatusState


class Platform(Protocol):
    """Protocol for the platform operations the analyzer and merge queue need."""

    async def fetch_open_prs(self, repo: str) -> list[PullRequest]: ...

    async def fetch_pr(self, repo: str, number: int) -> PullRequest: ...

    async def fetch_reviews(self, repo: str, number: int) -> list[Review]: ...

    async def fetch_statuses(self, repo: str, sha: str) -> dict[str, StatusState]: ...

    async def fetch_comments(self, repo: str, number: int) -> list[Comment]: ...

    async def add_labels(self, repo: str, number: int, labels: list[str]) -> None: ...

    async def remove_label(self, repo: str, number: int, label: str) -> None: ...

    async def post_comment(self, repo: str, number: int, body: str) -> None: ...

    async def merge(
        self,
        repo: str,
        number: int,
        *,
        title: str,
        sha: str,
        method: MergeMethod,
        message: str,
    ) -> str: ...

    async def bot_identity(self) -> str: ...
