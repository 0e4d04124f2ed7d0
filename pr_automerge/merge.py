"""Merge queue: waits for GitHub to settle a PR's mergeability, then merges it."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from pydantic import BaseModel

from .client import GitHubAPIError
from .models import MergeableState, PullRequest, RepoConfig
from .platform import Platform
from .sanitize import remove_html_comments

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 10.0
MAX_POLL_ATTEMPTS = 3

# GitHub may report "unstable" while this very bot is running as a check, but
# the required statuses have already passed by the time we get here.
MERGEABLE_STATES = frozenset(
    {MergeableState.CLEAN, MergeableState.HAS_HOOKS, MergeableState.UNSTABLE}
)


class PollDecision(Enum):
    """What to do after inspecting a freshly fetched PR."""

    CONTINUE = "continue"
    ABORT = "abort"
    COMMIT = "commit"


class MergeState(str, Enum):
    """Terminal state of a merge attempt."""

    DONE = "done"
    ABORTED = "aborted"


class MergeResult(BaseModel):
    """Outcome of running a PR through the merge queue."""

    state: MergeState
    reason: str | None = None
    sha: str | None = None
    attempts: int = 0

    @property
    def merged(self) -> bool:
        return self.state == MergeState.DONE


def classify(mergeable_state: str | None) -> PollDecision:
    """Map GitHub's mergeable state onto a poll decision."""
    if mergeable_state is None:
        return PollDecision.CONTINUE
    try:
        state = MergeableState(mergeable_state)
    except ValueError:
        logger.warning("Unsupported merge state '%s'", mergeable_state)
        return PollDecision.ABORT
    if state == MergeableState.UNKNOWN:
        return PollDecision.CONTINUE
    if state in MERGEABLE_STATES:
        return PollDecision.COMMIT
    return PollDecision.ABORT


def abort_reason(pr: PullRequest) -> str | None:
    """
    Human readable reason why a PR in a blocking merge state can't merge.

    Returns None for merge states GitHub is not documented to report.
    """
    if pr.mergeable_state == MergeableState.DRAFT:
        return "PR is a draft and can't be merged"
    if pr.mergeable_state == MergeableState.BEHIND:
        return (
            f"PR branch '{pr.head_ref}' is behind '{pr.base_ref}' "
            "and needs to be updated"
        )
    if pr.mergeable_state == MergeableState.DIRTY:
        return "GitHub is unable to create a merge commit for the PR"
    if pr.mergeable_state == MergeableState.BLOCKED:
        return "1 or more required checks are pending"
    return None


def commit_message(pr: PullRequest) -> str:
    """Merge commit body: the PR description without HTML comments, then its URL."""
    body = remove_html_comments(pr.body or "")
    if not body:
        return pr.html_url
    return f"{body}\n\n{pr.html_url}"


class MergeQueue:
    """
    Merges a single PR once GitHub has computed its mergeability.

    Mergeability is computed asynchronously by GitHub, so the PR is re-fetched
    on every attempt instead of trusting the snapshot the analysis used.

    Args:
        platform: Platform used to fetch and merge the PR
        config: Configuration of the PR's repository
        sleep: Coroutine used for waiting between polls
    """

    def __init__(
        self,
        platform: Platform,
        config: RepoConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.config = config
        self.sleep = sleep

    async def run(self, pr: PullRequest) -> MergeResult:
        """Poll the PR until its mergeability is known, then try to merge it."""
        if self.config.merge_delay_seconds:
            await self.sleep(self.config.merge_delay_seconds)

        for attempt in range(1, MAX_POLL_ATTEMPTS + 1):
            current = await self.platform.fetch_pr(self.config.name, pr.number)
            decision = classify(current.mergeable_state)

            if decision == PollDecision.CONTINUE:
                logger.warning("Merge state for PR #%d is unknown, retrying", pr.number)
                if attempt < MAX_POLL_ATTEMPTS:
                    await self.sleep(POLL_INTERVAL_SECONDS)
                continue

            if decision == PollDecision.ABORT:
                reason = abort_reason(current)
                if reason is None:
                    # Already logged by classify(), nothing to tell the author
                    return MergeResult(
                        state=MergeState.ABORTED,
                        reason=f"unsupported merge state '{current.mergeable_state}'",
                        attempts=attempt,
                    )
                return await self._abort(current, reason, attempt)

            return await self._commit(current, attempt)

        logger.warning(
            "Gave up waiting for the merge state of PR #%d after %d attempts",
            pr.number,
            MAX_POLL_ATTEMPTS,
        )
        return MergeResult(
            state=MergeState.ABORTED,
            reason="merge state is still unknown",
            attempts=MAX_POLL_ATTEMPTS,
        )

    async def _commit(self, pr: PullRequest, attempts: int) -> MergeResult:
        try:
            sha = await self.platform.merge(
                self.config.name,
                pr.number,
                title=f"{pr.title} (#{pr.number})",
                sha=pr.head_sha,
                method=self.config.merge_method,
                message=commit_message(pr),
            )
        except GitHubAPIError as e:
            return await self._abort(pr, f"Failed to merge PR: {e}", attempts)

        logger.info("Successfully merged PR #%d: %s", pr.number, sha)
        return MergeResult(state=MergeState.DONE, sha=sha, attempts=attempts)

    async def _abort(self, pr: PullRequest, reason: str, attempts: int) -> MergeResult:
        logger.warning("PR #%d was not able to automerge: %s", pr.number, reason)

        if self.config.comment_on_merge_abort:
            # Depending on how fast events get processed this might end up
            # commenting multiple times
            try:
                await self.platform.post_comment(
                    self.config.name, pr.number, f"automerge aborted: {reason}"
                )
            except GitHubAPIError as e:
                logger.warning(
                    "Failed to comment on PR #%d about the aborted merge: %s",
                    pr.number,
                    e,
                )

        return MergeResult(state=MergeState.ABORTED, reason=reason, attempts=attempts)
