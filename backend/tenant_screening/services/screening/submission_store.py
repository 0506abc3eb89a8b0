"""
Submission Store

Narrow read/write view of the rental submission aggregate. The rental
application flow owns these rows; reconciliation only reads the status,
checks for a decision, and writes a new status.
"""
from typing import Optional

from sqlalchemy.orm import Session

from ...models.db_models import RentalDecisionDB, RentalSubmissionDB, SubmissionStatus
from .clock import utc_now


class SubmissionStore:

    def __init__(self, db_session: Session):
        self.db = db_session

    def get(self, submission_id: str) -> Optional[RentalSubmissionDB]:
        return self.db.query(RentalSubmissionDB).filter(RentalSubmissionDB.id == submission_id).first()

    def get_status(self, submission_id: str) -> Optional[SubmissionStatus]:
        submission = self.get(submission_id)
        return submission.status if submission else None

    def has_decision(self, submission_id: str) -> bool:
        return self.db.query(RentalDecisionDB).filter(
            RentalDecisionDB.submission_id == submission_id
        ).first() is not None

    def set_status(self, submission_id: str, status: SubmissionStatus) -> Optional[RentalSubmissionDB]:
        submission = self.get(submission_id)
        if submission is None:
            return None
        submission.status = status
        submission.updated_at = utc_now()
        self.db.flush()
        return submission
