"""
Tests for submission status derivation.

1. Candidate rules over order statuses
2. Forward-only application along the precedence order
3. A recorded decision locks the submission
"""
import pytest

from tenant_screening.models.db_models import ScreeningOrderStatus as O, SubmissionStatus as S


# =============================================================================
# TEST: CANDIDATE RULES
# =============================================================================

class TestDeriveCandidate:
    """Pure rule evaluation."""

    @pytest.mark.parametrize("statuses,expected", [
        ([O.COMPLETE], S.COMPLETE),
        ([O.COMPLETE, O.COMPLETE], S.COMPLETE),
        ([O.COMPLETE, O.IN_PROGRESS], S.IN_PROGRESS),
        ([O.SENT, O.IN_PROGRESS, O.ERROR], S.IN_PROGRESS),
        ([O.SENT], S.SCREENING_REQUESTED),
        ([O.NOT_SENT, O.ERROR], S.SCREENING_REQUESTED),
        ([O.COMPLETE, O.ERROR], S.SCREENING_REQUESTED),
        ([O.ERROR, O.ERROR], None),
        ([], None),
    ])
    def test_rules(self, statuses, expected):
        from tenant_screening.services.screening import derive_candidate

        assert derive_candidate(statuses) == expected

    def test_precedence_follows_declaration_order(self):
        from tenant_screening.services.screening.status_deriver import is_advance

        assert is_advance(S.SUBMITTED, S.SCREENING_REQUESTED) is True
        assert is_advance(S.COMPLETE, S.IN_PROGRESS) is False
        assert is_advance(S.IN_PROGRESS, S.IN_PROGRESS) is False
        assert is_advance(None, S.SCREENING_REQUESTED) is True


# =============================================================================
# TEST: RECOMPUTE
# =============================================================================

class TestRecompute:
    """SubmissionStatusDeriver.recompute against stored rows."""

    def test_advances_submitted_to_screening_requested(self, db, make_submission, make_order):
        from tenant_screening.services.screening import SubmissionStatusDeriver

        submission = make_submission(status=S.SUBMITTED)
        make_order(submission, status=O.SENT)

        result = SubmissionStatusDeriver(db).recompute(submission.id)
        db.commit()

        assert result.applied is True
        assert result.previous == S.SUBMITTED
        assert result.candidate == S.SCREENING_REQUESTED
        db.refresh(submission)
        assert submission.status == S.SCREENING_REQUESTED

    def test_never_regresses_from_complete(self, db, make_submission, make_order):
        """A late in_progress reading cannot pull a complete submission back."""
        from tenant_screening.services.screening import SubmissionStatusDeriver

        submission = make_submission(status=S.COMPLETE)
        make_order(submission, status=O.IN_PROGRESS)

        result = SubmissionStatusDeriver(db).recompute(submission.id)

        assert result.applied is False
        assert result.reason == "not_an_advance"
        db.refresh(submission)
        assert submission.status == S.COMPLETE

    def test_decision_locks_submission(self, db, make_submission, make_order, record_decision):
        from tenant_screening.services.screening import SubmissionStatusDeriver

        submission = make_submission(status=S.SCREENING_REQUESTED)
        make_order(submission, status=O.COMPLETE)
        record_decision(submission)

        result = SubmissionStatusDeriver(db).recompute(submission.id)

        assert result.applied is False
        assert result.reason == "decision_recorded"
        db.refresh(submission)
        assert submission.status == S.SCREENING_REQUESTED

    def test_all_errored_leaves_status(self, db, make_submission, make_order):
        from tenant_screening.services.screening import SubmissionStatusDeriver

        submission = make_submission(status=S.SUBMITTED)
        make_order(submission, status=O.ERROR)

        result = SubmissionStatusDeriver(db).recompute(submission.id)

        assert result.applied is False
        assert result.reason == "no_candidate"

    def test_unknown_submission(self, db):
        from tenant_screening.services.screening import SubmissionStatusDeriver

        result = SubmissionStatusDeriver(db).recompute("does-not-exist")

        assert result.applied is False
        assert result.reason == "submission_not_found"
