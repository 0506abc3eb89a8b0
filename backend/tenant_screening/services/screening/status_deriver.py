"""
Submission Status Deriver

Recomputes a rental submission's aggregate status from every screening
order tied to it. Runs after any order mutation, from either channel.

Rules, in priority order:
1. A recorded decision locks the submission. Nothing is written.
2. Every order complete              -> complete
3. Any order in_progress             -> in_progress
4. At least one order not in error   -> screening_requested
5. All orders errored (or none)      -> no candidate

A candidate is only applied when it is strictly later than the current
status in SUBMISSION_STATUS_PRECEDENCE. The submission never moves back.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models.db_models import (
    ScreeningOrderStatus, SubmissionStatus, SUBMISSION_STATUS_PRECEDENCE,
)
from .order_store import ScreeningOrderStore
from .submission_store import SubmissionStore

logger = logging.getLogger(__name__)


def precedence(status: SubmissionStatus) -> int:
    return SUBMISSION_STATUS_PRECEDENCE.index(SubmissionStatus(status))


def derive_candidate(order_statuses: Iterable[ScreeningOrderStatus]) -> Optional[SubmissionStatus]:
    statuses = [ScreeningOrderStatus(s) for s in order_statuses]
    if not statuses:
        return None
    if all(s == ScreeningOrderStatus.COMPLETE for s in statuses):
        return SubmissionStatus.COMPLETE
    if any(s == ScreeningOrderStatus.IN_PROGRESS for s in statuses):
        return SubmissionStatus.IN_PROGRESS
    if any(s != ScreeningOrderStatus.ERROR for s in statuses):
        return SubmissionStatus.SCREENING_REQUESTED
    return None


def is_advance(current: Optional[SubmissionStatus], candidate: SubmissionStatus) -> bool:
    if current is None:
        return True
    return precedence(candidate) > precedence(current)


@dataclass
class DerivationResult:
    submission_id: str
    previous: Optional[SubmissionStatus]
    candidate: Optional[SubmissionStatus]
    applied: bool
    reason: str

    def to_dict(self):
        return {
            "submission_id": self.submission_id,
            "previous": self.previous.value if self.previous else None,
            "candidate": self.candidate.value if self.candidate else None,
            "applied": self.applied,
            "reason": self.reason,
        }


class SubmissionStatusDeriver:

    def __init__(self, db_session: Session):
        self.db = db_session
        self.orders = ScreeningOrderStore(db_session)
        self.submissions = SubmissionStore(db_session)

    def recompute(self, submission_id: str) -> DerivationResult:
        submission = self.submissions.get(submission_id)
        if submission is None:
            logger.warning(f"Status derivation skipped: submission {submission_id} not found")
            return DerivationResult(submission_id, None, None, False, "submission_not_found")

        current = submission.status
        if self.submissions.has_decision(submission_id):
            return DerivationResult(submission_id, current, None, False, "decision_recorded")

        candidate = derive_candidate(o.status for o in self.orders.list_for_submission(submission_id))
        if candidate is None:
            return DerivationResult(submission_id, current, None, False, "no_candidate")

        if not is_advance(current, candidate):
            return DerivationResult(submission_id, current, candidate, False, "not_an_advance")

        self.submissions.set_status(submission_id, candidate)
        logger.info(
            f"Submission {submission_id} status advanced "
            f"{current.value if current else None} -> {candidate.value}"
        )
        return DerivationResult(submission_id, current, candidate, True, "advanced")
