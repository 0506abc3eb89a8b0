"""
Tests for ScreeningWebhookReceiver.

Push notifications are merged into existing orders only:
1. Status push moves the order and the submission forward
2. Result push completes the order and keeps earlier report identifiers
3. Unknown references and garbage payloads are dropped without writes
4. Replaying the same payload leaves the same state
"""
from sqlalchemy.exc import OperationalError

from tenant_screening.models.db_models import ScreeningOrderStatus, SubmissionStatus


def status_xml(reference, status, extra=""):
    return f"<SSO><ReferenceNumber>{reference}</ReferenceNumber><Status>{status}</Status>{extra}</SSO>"


def result_xml(reference, extra=""):
    return f"<ResultUpdate><ReferenceNumber>{reference}</ReferenceNumber>{extra}</ResultUpdate>"


# =============================================================================
# TEST: STATUS WEBHOOK
# =============================================================================

class TestStatusWebhook:
    """Interim status pushes."""

    def test_in_progress_advances_order_and_submission(self, db, make_submission, make_order):
        """sent order + 'In Progress' push → order in_progress, submission in_progress."""
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission(status=SubmissionStatus.SCREENING_REQUESTED)
        order = make_order(submission, status=ScreeningOrderStatus.SENT)

        xml = status_xml(order.reference_number, "In Progress")
        outcome = ScreeningWebhookReceiver(db).handle_status_webhook(xml)

        assert outcome.handled is True
        assert outcome.submission_id == submission.id
        db.refresh(order)
        db.refresh(submission)
        assert order.status == ScreeningOrderStatus.IN_PROGRESS
        assert order.raw_status_xml == xml
        assert order.raw_result_xml is None
        assert order.next_status_check_at is not None
        assert submission.status == SubmissionStatus.IN_PROGRESS

    def test_terminal_status_clears_schedule(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission()
        order = make_order(submission)

        ScreeningWebhookReceiver(db).handle_status_webhook(status_xml(order.reference_number, "Cancelled"))

        db.refresh(order)
        assert order.status == ScreeningOrderStatus.ERROR
        assert order.next_status_check_at is None

    def test_unknown_reference_is_not_handled(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission()
        order = make_order(submission)

        outcome = ScreeningWebhookReceiver(db).handle_status_webhook(status_xml("LS-unknown-1", "Complete"))

        assert outcome.handled is False
        assert outcome.reason == "order_not_found"
        db.refresh(order)
        assert order.status == ScreeningOrderStatus.SENT

    def test_unparseable_payload_is_not_handled(self, db):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        outcome = ScreeningWebhookReceiver(db).handle_status_webhook("not xml at all")

        assert outcome.handled is False
        assert outcome.reason == "unparseable"

    def test_storage_error_is_reported_not_raised(self, db, make_submission, make_order):
        from unittest.mock import patch
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission()
        order = make_order(submission)
        receiver = ScreeningWebhookReceiver(db)

        with patch.object(receiver.reconciler, "merge", side_effect=OperationalError("UPDATE", {}, Exception("db down"))):
            outcome = receiver.handle_status_webhook(status_xml(order.reference_number, "Complete"))

        assert outcome.handled is False
        assert outcome.reason == "storage_error"


# =============================================================================
# TEST: RESULT WEBHOOK
# =============================================================================

class TestResultWebhook:
    """Final result pushes."""

    def test_result_completes_order_and_submission(self, db, make_submission, make_order):
        """in_progress order + result push with ReportId → complete everywhere."""
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission(status=SubmissionStatus.IN_PROGRESS)
        order = make_order(submission, status=ScreeningOrderStatus.IN_PROGRESS)

        xml = result_xml(order.reference_number, "<ReportId>R-1</ReportId>")
        outcome = ScreeningWebhookReceiver(db).handle_result_webhook(xml)

        assert outcome.handled is True
        assert outcome.order_status == ScreeningOrderStatus.COMPLETE
        db.refresh(order)
        db.refresh(submission)
        assert order.status == ScreeningOrderStatus.COMPLETE
        assert order.report_id == "R-1"
        assert order.raw_result_xml == xml
        assert order.next_status_check_at is None
        assert submission.status == SubmissionStatus.COMPLETE

    def test_existing_report_identifiers_are_kept(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission()
        order = make_order(submission, report_id="R-old", report_url="https://r/old")

        ScreeningWebhookReceiver(db).handle_result_webhook(result_xml(order.reference_number))

        db.refresh(order)
        assert order.report_id == "R-old"
        assert order.report_url == "https://r/old"

    def test_one_of_two_orders_complete_keeps_submission_in_progress(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission(status=SubmissionStatus.IN_PROGRESS)
        first = make_order(submission, status=ScreeningOrderStatus.IN_PROGRESS)
        make_order(submission, status=ScreeningOrderStatus.IN_PROGRESS)

        ScreeningWebhookReceiver(db).handle_result_webhook(result_xml(first.reference_number))

        db.refresh(submission)
        assert submission.status == SubmissionStatus.IN_PROGRESS

    def test_replay_is_idempotent(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission(status=SubmissionStatus.IN_PROGRESS)
        order = make_order(submission, status=ScreeningOrderStatus.IN_PROGRESS)
        xml = result_xml(order.reference_number, "<ReportURL>https://r/9</ReportURL>")
        receiver = ScreeningWebhookReceiver(db)

        receiver.handle_result_webhook(xml)
        db.refresh(order)
        first = (order.status, order.report_url, order.raw_result_xml, order.next_status_check_at)

        outcome = receiver.handle_result_webhook(xml)
        db.refresh(order)
        db.refresh(submission)

        assert outcome.handled is True
        assert (order.status, order.report_url, order.raw_result_xml, order.next_status_check_at) == first
        assert submission.status == SubmissionStatus.COMPLETE

    def test_decided_submission_is_not_touched(self, db, make_submission, make_order, record_decision):
        from tenant_screening.services.screening import ScreeningWebhookReceiver

        submission = make_submission(status=SubmissionStatus.IN_PROGRESS)
        order = make_order(submission, status=ScreeningOrderStatus.IN_PROGRESS)
        record_decision(submission)

        outcome = ScreeningWebhookReceiver(db).handle_result_webhook(result_xml(order.reference_number))

        assert outcome.handled is True
        db.refresh(order)
        db.refresh(submission)
        assert order.status == ScreeningOrderStatus.COMPLETE
        assert submission.status == SubmissionStatus.IN_PROGRESS
