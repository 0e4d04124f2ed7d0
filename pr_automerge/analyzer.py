"""Merge eligibility analysis for a single pull request."""

import asyncio
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from .models import Actions, Comment, PRState, PullRequest, RepoConfig, StatusState
from .platform import Platform
from .review import Approval, CommentEffect, ReviewLedger

logger = logging.getLogger(__name__)

# PRs without activity for longer than this are left alone
INACTIVITY_THRESHOLD = timedelta(minutes=60)


class BlockReason(str, Enum):
    """Why a PR is currently not merged."""

    DRAFT_PR = "draft_pr"
    CLOSED_PR = "closed_pr"
    INACTIVE_PR = "inactive_pr"
    MISSING_REVIEWS = "missing_reviews"
    MISSING_REVIEW_APPROVAL = "missing_review_approval"
    CI_NOT_PASSING = "ci_not_passing"
    MISSING_DESCRIPTION = "missing_description"
    BLOCKED_BY_LABEL = "blocked_by_label"
    INSIDE_GRACE_PERIOD = "inside_grace_period"


class LabelKind(Enum):
    """Configured labels the analyzer maintains."""

    REVIEWED = "reviewed"
    CI_PASSED = "ci_passed"
    NEEDS_DESCRIPTION = "needs_description"


@dataclass(frozen=True)
class ReasonEffect:
    """What a block reason implies for labels, explanations and merging."""

    label: LabelKind | None
    sentence: str | None
    vetoes_merge: bool = True


# Terminal reasons are never explained, the analyzer stops before comments
REASON_EFFECTS: dict[BlockReason, ReasonEffect] = {
    BlockReason.DRAFT_PR: ReasonEffect(None, None),
    BlockReason.CLOSED_PR: ReasonEffect(None, None),
    BlockReason.INACTIVE_PR: ReasonEffect(None, None),
    BlockReason.MISSING_REVIEWS: ReasonEffect(
        LabelKind.REVIEWED, "Some requested reviewers have not reviewed yet."
    ),
    BlockReason.MISSING_REVIEW_APPROVAL: ReasonEffect(
        LabelKind.REVIEWED, "The PR is missing an approving review."
    ),
    BlockReason.CI_NOT_PASSING: ReasonEffect(
        LabelKind.CI_PASSED, "Some required status checks have not passed."
    ),
    BlockReason.MISSING_DESCRIPTION: ReasonEffect(
        LabelKind.NEEDS_DESCRIPTION, "The PR needs a description."
    ),
    BlockReason.BLOCKED_BY_LABEL: ReasonEffect(None, "A label is blocking the merge."),
    BlockReason.INSIDE_GRACE_PERIOD: ReasonEffect(
        None, "The PR was updated too recently, waiting for the grace period."
    ),
}

TERMINAL_REASONS = frozenset(
    {BlockReason.DRAFT_PR, BlockReason.CLOSED_PR, BlockReason.INACTIVE_PR}
)

# Cheap reasons after which fetching reviews and statuses is pointless
SKIP_EXTENDED_REASONS = frozenset(
    {
        BlockReason.MISSING_REVIEWS,
        BlockReason.BLOCKED_BY_LABEL,
        BlockReason.INSIDE_GRACE_PERIOD,
    }
)

NOTHING_BLOCKING = "Nothing is blocking this PR, it should be merged shortly."


def explain(reasons: set[BlockReason], missing_approvals: Sequence[str] = ()) -> str:
    """Render a human readable explanation of `reasons` as a bullet list."""
    lines = []
    for reason in sorted(reasons, key=lambda r: list(BlockReason).index(r)):
        sentence = REASON_EFFECTS[reason].sentence
        if sentence is None:
            continue
        if reason == BlockReason.MISSING_REVIEW_APPROVAL and missing_approvals:
            users = ", ".join(f"@{user}" for user in missing_approvals)
            sentence = f"{sentence} Waiting on: {users}."
        lines.append(f"- {sentence}")
    if not lines:
        return NOTHING_BLOCKING
    return "This PR is not merged yet because:\n" + "\n".join(lines)


class Analyzer:
    """Computes the block reasons and required actions for a PR."""

    def __init__(
        self,
        pr: PullRequest,
        config: RepoConfig,
        platform: Platform,
        now: datetime | None = None,
    ):
        self.pr = pr
        self.config = config
        self.platform = platform
        self.now = now or datetime.now(UTC)
        self.missing_approvals_from: list[str] = []
        self._evaluated: set[LabelKind] = set()

    def requires_reviews(self) -> bool:
        """Reviews are required when reviewed PRs get a label and the PR isn't trivial."""
        if self.config.reviewed_label is None:
            return False
        skip = self.config.skip_review_label
        return skip is None or skip not in self.pr.labels

    def merge_blocked_by_label(self) -> bool:
        label = self.config.block_merge_label
        return label is not None and label in self.pr.labels

    def needs_description(self) -> bool:
        return (
            self.config.needs_description_label is not None
            and not self.pr.has_description
        )

    def outside_grace_period(self) -> bool:
        grace = self.config.automerge_grace_period
        if grace is None:
            return True
        return self.now - timedelta(seconds=grace) > self.pr.updated_at

    def terminal_reasons(self) -> set[BlockReason]:
        if self.pr.is_draft:
            return {BlockReason.DRAFT_PR}
        if self.pr.state == PRState.CLOSED:
            return {BlockReason.CLOSED_PR}
        if self.now - self.pr.updated_at > INACTIVITY_THRESHOLD:
            return {BlockReason.INACTIVE_PR}
        return set()

    def cheap_reasons(self) -> set[BlockReason]:
        reasons: set[BlockReason] = set()
        if self.requires_reviews() and self.pr.pending_reviewer_count > 0:
            logger.info(
                "PR #%d still has %d pending review(s)",
                self.pr.number,
                self.pr.pending_reviewer_count,
            )
            reasons.add(BlockReason.MISSING_REVIEWS)
            self._evaluated.add(LabelKind.REVIEWED)
        if self.merge_blocked_by_label():
            logger.info(
                "PR #%d has the '%s' label which blocks automerging",
                self.pr.number,
                self.config.block_merge_label,
            )
            reasons.add(BlockReason.BLOCKED_BY_LABEL)
        if self.needs_description():
            logger.info(
                "PR #%d does not have a description, but one is required",
                self.pr.number,
            )
            reasons.add(BlockReason.MISSING_DESCRIPTION)
        self._evaluated.add(LabelKind.NEEDS_DESCRIPTION)
        if not self.outside_grace_period():
            logger.info("PR #%d is inside the automerge grace period", self.pr.number)
            reasons.add(BlockReason.INSIDE_GRACE_PERIOD)
        return reasons

    async def extended_reasons(self) -> set[BlockReason]:
        """Reasons that need statuses and reviews from the platform."""
        results = await asyncio.gather(
            self.platform.fetch_statuses(self.config.name, self.pr.head_sha),
            self.platform.fetch_reviews(self.config.name, self.pr.number),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        statuses, reviews = results
        reasons: set[BlockReason] = set()

        failing = [
            name
            for name in self.config.required_statuses
            if statuses.get(name) != StatusState.SUCCESS
        ]
        if failing:
            logger.info("PR #%d needs CI to pass: %s", self.pr.number, failing)
            reasons.add(BlockReason.CI_NOT_PASSING)
        self._evaluated.add(LabelKind.CI_PASSED)

        comment_effect = (
            CommentEffect.REQUESTS_CHANGE
            if self.config.comment_requests_change
            else CommentEffect.IGNORE
        )
        ledger = ReviewLedger(self.pr.author, comment_effect).record_reviews(reviews)
        approval = Approval.REQUIRED if self.requires_reviews() else Approval.OPTIONAL
        if not ledger.approved(approval):
            self.missing_approvals_from = ledger.missing_approvals_from_users(
                self.pr.requested_reviewers
            )
            logger.info(
                "PR #%d needs review approval from %s",
                self.pr.number,
                self.missing_approvals_from or "anyone",
            )
            reasons.add(BlockReason.MISSING_REVIEW_APPROVAL)
        self._evaluated.add(LabelKind.REVIEWED)
        return reasons

    async def block_reasons(self) -> set[BlockReason]:
        """Compute every reason currently preventing the merge."""
        self._evaluated = set()
        self.missing_approvals_from = []

        terminal = self.terminal_reasons()
        if terminal:
            return terminal

        reasons = self.cheap_reasons()
        if not reasons & SKIP_EXTENDED_REASONS or self.config.react_to_comments:
            reasons |= await self.extended_reasons()
        return reasons

    def _label_name(self, kind: LabelKind) -> str | None:
        return {
            LabelKind.REVIEWED: self.config.reviewed_label,
            LabelKind.CI_PASSED: self.config.ci_passed_label,
            LabelKind.NEEDS_DESCRIPTION: self.config.needs_description_label,
        }[kind]

    def resolve_labels(self, reasons: set[BlockReason], actions: Actions) -> None:
        """Set every configured label driven by a check that ran this pass."""
        flagged = {
            REASON_EFFECTS[reason].label
            for reason in reasons
            if REASON_EFFECTS[reason].label is not None
        }
        for kind in LabelKind:
            label = self._label_name(kind)
            if label is None or kind not in self._evaluated:
                continue
            if kind == LabelKind.NEEDS_DESCRIPTION:
                actions.set_label(label, kind in flagged)
            else:
                actions.set_label(label, kind not in flagged)

    async def required_actions(self) -> Actions:
        """Compute the label, comment and merge actions for the PR."""
        reasons = await self.block_reasons()
        if reasons & TERMINAL_REASONS:
            logger.info(
                "PR #%d is %s, nothing to do",
                self.pr.number,
                ", ".join(sorted(reason.value for reason in reasons)),
            )
            return Actions.noop()

        actions = Actions.noop()
        self.resolve_labels(reasons, actions)
        actions.set_merge(
            not any(REASON_EFFECTS[reason].vetoes_merge for reason in reasons)
        )

        if self.config.react_to_comments:
            answer = await self.analyze_comments(reasons)
            if answer is not None:
                actions.add_comment(answer)
        return actions

    async def analyze_comments(self, reasons: set[BlockReason]) -> str | None:
        """Answer the latest unanswered mention of the bot, if there is one."""
        bot = await self.platform.bot_identity()
        comments = await self.platform.fetch_comments(self.config.name, self.pr.number)
        if find_unanswered_mention(comments, bot) is None:
            return None
        logger.info("PR #%d mentions the bot, explaining its state", self.pr.number)
        return explain(reasons, self.missing_approvals_from)


def find_unanswered_mention(comments: list[Comment], bot: str) -> Comment | None:
    """Most recent comment mentioning `bot` that the bot did not reply to after."""
    # Logins may contain dashes, so "@bot-legacy" is someone else
    mention = re.compile(rf"@{re.escape(bot)}(?![\w-])", re.IGNORECASE)
    for comment in reversed(comments):
        if comment.author == bot:
            return None
        if mention.search(comment.body):
            return comment
    return None
