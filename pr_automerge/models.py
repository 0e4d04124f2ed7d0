"""Pydantic data models for pull request triage."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class PRState(str, Enum):
    """Pull request state."""

    OPEN = "open"
    CLOSED = "closed"


class ReviewState(str, Enum):
    """Pull request review state."""

    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    PENDING = "PENDING"
    DISMISSED = "DISMISSED"


class StatusState(str, Enum):
    """State of a single commit status or check."""

    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    ERROR = "error"


class MergeableState(str, Enum):
    """GitHub's asynchronously computed mergeability of a PR."""

    UNKNOWN = "unknown"
    CLEAN = "clean"
    HAS_HOOKS = "has_hooks"
    UNSTABLE = "unstable"
    DRAFT = "draft"
    BEHIND = "behind"
    DIRTY = "dirty"
    BLOCKED = "blocked"


class MergeMethod(str, Enum):
    """Method used to merge a PR."""

    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


class PullRequest(BaseModel):
    """Immutable snapshot of a pull request, taken once per analysis pass."""

    model_config = ConfigDict(frozen=True)

    id: int
    number: int
    title: str = ""
    author: str
    head_sha: str
    head_ref: str = ""
    base_ref: str = ""
    is_draft: bool = False
    state: PRState = PRState.OPEN
    updated_at: datetime
    labels: frozenset[str] = Field(default_factory=frozenset)
    body: str | None = None
    requested_reviewers: tuple[str, ...] = ()
    html_url: str = ""
    mergeable_state: str | None = None

    @property
    def has_description(self) -> bool:
        """Whether the PR body contains anything besides whitespace."""
        return bool(self.body and self.body.strip())

    @property
    def pending_reviewer_count(self) -> int:
        """Number of reviewers who were requested but have not reviewed yet."""
        return len(self.requested_reviewers)


class Review(BaseModel):
    """A single review event."""

    reviewer_id: str
    state: ReviewState
    submitted_at: datetime | None = None


class Comment(BaseModel):
    """An issue comment on a PR."""

    author: str
    body: str = ""
    created_at: datetime | None = None


class Actions(BaseModel):
    """Label, comment and merge actions required for a PR."""

    merge: bool = False
    add_labels: set[str] = Field(default_factory=set)
    remove_labels: set[str] = Field(default_factory=set)
    post_comment: list[str] = Field(default_factory=list)

    @classmethod
    def noop(cls) -> "Actions":
        """Actions that change nothing."""
        return cls()

    def set_merge(self, merge: bool) -> "Actions":
        self.merge = merge
        return self

    def set_label(self, label: str, present: bool) -> "Actions":
        """Require `label` to be present or absent, overriding any earlier choice."""
        if present:
            self.remove_labels.discard(label)
            self.add_labels.add(label)
        else:
            self.add_labels.discard(label)
            self.remove_labels.add(label)
        return self

    def add_comment(self, body: str) -> "Actions":
        self.post_comment.append(body)
        return self


class RepoConfig(BaseModel):
    """Automerge policy for a single repository."""

    name: str
    needs_description_label: str | None = None
    required_statuses: list[str] = Field(default_factory=list)
    ci_passed_label: str | None = None
    reviewed_label: str | None = None
    block_merge_label: str | None = None
    skip_review_label: str | None = None
    automerge_grace_period: int | None = Field(default=None, ge=0)
    merge_method: MergeMethod = MergeMethod.MERGE
    react_to_comments: bool = False
    comment_requests_change: bool = False
    comment_on_merge_abort: bool = True
    merge_delay_seconds: float | None = Field(default=None, ge=0.0)

    @field_validator(
        "needs_description_label",
        "ci_passed_label",
        "reviewed_label",
        "block_merge_label",
        "skip_review_label",
        mode="before",
    )
    @classmethod
    def empty_label_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("merge_method", mode="before")
    @classmethod
    def parse_merge_method(cls, v: Any) -> Any:
        if v is None:
            return MergeMethod.MERGE
        if isinstance(v, str):
            try:
                return MergeMethod(v.strip().lower())
            except ValueError:
                logger.error(
                    "Unknown merge_method '%s' specified, falling back to 'merge'", v
                )
                return MergeMethod.MERGE
        return v


class Config(BaseModel):
    """Top-level automerge configuration."""

    owner: str
    dry_run: bool = False
    repos: list[RepoConfig] = Field(default_factory=list)

    def repo(self, name: str) -> RepoConfig | None:
        """Return the configuration for repository `name`, if any."""
        for repo in self.repos:
            if repo.name == name:
                return repo
        return None
