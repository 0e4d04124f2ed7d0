"""Per-reviewer approval ledger."""

import logging
from collections.abc import Iterable
from enum import Enum

from .models import Review, ReviewState

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    """Standing opinion of a single reviewer."""

    APPROVED = "approved"
    CHANGE_REQUESTED = "change_requested"


class Approval(Enum):
    """Whether at least one approving review is needed."""

    REQUIRED = "required"
    OPTIONAL = "optional"


class CommentEffect(Enum):
    """Effect of a COMMENTED review on the reviewer's verdict."""

    REQUESTS_CHANGE = "requests_change"
    IGNORE = "ignore"


class ReviewLedger:
    """
    Folds a chronological review history into one verdict per reviewer.

    Only APPROVED and CHANGES_REQUESTED reviews overwrite a reviewer's entry,
    plus COMMENTED reviews when comments count as change requests. Reviews by
    the PR author are never recorded.
    """

    def __init__(self, author: str, comment_effect: CommentEffect):
        self.author = author
        self.comment_effect = comment_effect
        self._verdicts: dict[str, Verdict] = {}

    @property
    def verdicts(self) -> dict[str, Verdict]:
        """Latest meaningful verdict per reviewer."""
        return dict(self._verdicts)

    def record_reviews(self, reviews: Iterable[Review]) -> "ReviewLedger":
        """Record `reviews` in the order given, which must be submission order."""
        for review in reviews:
            self.record(review)
        return self

    def record(self, review: Review) -> None:
        if review.reviewer_id == self.author:
            return

        verdict = self._verdict_for(review)
        if verdict is not None:
            self._verdicts[review.reviewer_id] = verdict

    def _verdict_for(self, review: Review) -> Verdict | None:
        if review.state == ReviewState.APPROVED:
            return Verdict.APPROVED
        if review.state == ReviewState.CHANGES_REQUESTED:
            return Verdict.CHANGE_REQUESTED
        if (
            review.state == ReviewState.COMMENTED
            and self.comment_effect == CommentEffect.REQUESTS_CHANGE
        ):
            # A comment made after the reviewer's own approval never retracts it.
            if self._verdicts.get(review.reviewer_id) == Verdict.APPROVED:
                return None
            return Verdict.CHANGE_REQUESTED
        return None

    def approved(self, approval: Approval) -> bool:
        """
        Check whether the recorded reviews allow the PR to merge.

        A single standing change request vetoes regardless of other approvals.
        Otherwise one approval is enough, and none is needed when approval is
        optional.
        """
        approved = approval == Approval.OPTIONAL
        for reviewer, verdict in self._verdicts.items():
            logger.debug("Review from '%s': %s", reviewer, verdict.value)
            if verdict == Verdict.CHANGE_REQUESTED:
                return False
            approved = True
        return approved

    def missing_approvals_from_users(
        self, requested: Iterable[str] = ()
    ) -> list[str]:
        """Reviewers we are still waiting on for an approval."""
        waiting = {
            reviewer
            for reviewer, verdict in self._verdicts.items()
            if verdict == Verdict.CHANGE_REQUESTED
        }
        waiting.update(
            reviewer
            for reviewer in requested
            if reviewer != self.author
            and self._verdicts.get(reviewer) != Verdict.APPROVED
        )
        return sorted(waiting)
