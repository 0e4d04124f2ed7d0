"""Parsing of pull request references given by users."""

import re
from dataclasses import dataclass
from urllib.parse import urlparse

GITHUB_HOSTS = ("github.com", "www.github.com")

PR_PATH_PATTERN = re.compile(
    r"^/(?P<owner>[^/]+)/(?P<repo>[^/]+)/pull/(?P<number>\d+)(?:/.*)?$"
)
PR_SHORTHAND_PATTERN = re.compile(
    r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)#(?P<number>\d+)$"
)


@dataclass(frozen=True)
class PRReference:
    """Identifies a pull request: the repository owner, its name and the PR number."""

    owner: str
    repo: str
    number: int

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


def parse_pr_reference(value: str) -> PRReference:
    """
    Parse a PR URL or an ``owner/repo#number`` shorthand.

    URLs may point at any tab of the PR (``/files``, ``/commits``...).

    Raises:
        ValueError: If the value does not identify a GitHub PR
    """
    value = value.strip()
    match = PR_SHORTHAND_PATTERN.match(value)
    if match is None:
        parsed = urlparse(value)
        if parsed.netloc not in GITHUB_HOSTS:
            raise ValueError(f"Not a GitHub PR reference: {value}")
        match = PR_PATH_PATTERN.match(parsed.path)
        if match is None:
            raise ValueError(f"Not a valid PR URL format: {value}")

    return PRReference(
        owner=match.group("owner"),
        repo=match.group("repo"),
        number=int(match.group("number")),
    )
