"""
Screening Order Service

Issues new screening orders: assigns the reference number, persists the
order with its polling window, sends AppScreen, and records the outcome.

The order row is committed before the vendor call so that a webhook racing
the AppScreen response still finds it.
"""
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import ScreeningOrderStatus
from ...models.screening import ApplicantInfo, CallbackUrls, ScreeningCredentials
from ..vendor.client import DigitalDelveClient
from .clock import Clock, utc_now
from .credential_store import CredentialDecryptionError, CredentialStore, Decryptor
from .order_store import ScreeningOrderStore
from .reconciliation import OrderReconciler
from .submission_store import SubmissionStore

logger = logging.getLogger(__name__)

FIRST_STATUS_CHECK_MINUTES = int(os.getenv("FIRST_STATUS_CHECK_MINUTES", "2"))
POLL_WINDOW_HOURS = int(os.getenv("POLL_WINDOW_HOURS", "48"))

STATUS_WEBHOOK_PATH = "/api/webhooks/digitaldelve/status"
RESULT_WEBHOOK_PATH = "/api/webhooks/digitaldelve/result"


def webhook_secret() -> str:
    """Read at call time so rotating the secret needs no restart."""
    return os.getenv("DIGITAL_DELVE_WEBHOOK_SECRET", "")


def generate_reference_number(submission_id: str, now: datetime, sequence: Optional[int] = None) -> str:
    """
    LS-<first 8 of submission id>-<epoch millis>[-NNN]

    The suffix keeps references unique when several orders for one
    submission are issued within the same millisecond.
    """
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    reference = f"LS-{submission_id[:8]}-{millis}"
    if sequence is not None:
        reference = f"{reference}-{sequence:03d}"
    return reference


def build_callback_urls(base_url: str, secret: Optional[str] = None) -> CallbackUrls:
    secret = webhook_secret() if secret is None else secret
    token_param = f"?token={quote(secret, safe='')}" if secret else ""
    base = base_url.rstrip("/")
    return CallbackUrls(
        status_post_url=f"{base}{STATUS_WEBHOOK_PATH}{token_param}",
        result_post_url=f"{base}{RESULT_WEBHOOK_PATH}{token_param}",
    )


@dataclass
class ScreeningRequestResult:
    success: bool
    order_id: Optional[str] = None
    reference_number: Optional[str] = None
    status: Optional[ScreeningOrderStatus] = None
    error: Optional[str] = None

    def to_dict(self):
        return {
            "success": self.success,
            "order_id": self.order_id,
            "reference_number": self.reference_number,
            "status": self.status.value if self.status else None,
            "error": self.error,
        }


@dataclass
class ApplicantRequest:
    applicant: ApplicantInfo
    person_id: Optional[str] = None


@dataclass
class BatchRequestResult:
    submission_id: str
    results: List[ScreeningRequestResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.success)


class ScreeningOrderService:
    """
    Usage:
        service = ScreeningOrderService(db)
        result = service.process_screening_request(
            submission_id, ApplicantInfo("Ada", "Lovelace", "ada@example.com"),
            base_url="https://app.example.com",
        )
    """

    def __init__(
        self,
        db_session: Session,
        client: Optional[DigitalDelveClient] = None,
        decryptor: Optional[Decryptor] = None,
        clock: Clock = utc_now,
    ):
        self.db = db_session
        self.client = client or DigitalDelveClient()
        self.orders = ScreeningOrderStore(db_session)
        self.submissions = SubmissionStore(db_session)
        self.credentials = CredentialStore(db_session, decryptor)
        self.reconciler = OrderReconciler(db_session)
        self.clock = clock

    def process_screening_request(
        self,
        submission_id: str,
        applicant: ApplicantInfo,
        base_url: str,
        invitation_id: Optional[str] = None,
        credentials: Optional[ScreeningCredentials] = None,
        person_id: Optional[str] = None,
        sequence: Optional[int] = None,
    ) -> ScreeningRequestResult:
        """
        Create and send one screening order.

        Credentials default to the landlord's verified account, then to the
        system account. A vendor rejection leaves an order in error (kept
        for the audit trail) and returns success=False.
        """
        submission = self.submissions.get(submission_id)
        if submission is None:
            return ScreeningRequestResult(success=False, error="Submission not found")

        if credentials is None:
            try:
                credentials = self.credentials.resolve_for_owner(submission.owner_id)
            except CredentialDecryptionError as e:
                logger.error(f"Cannot order screening for submission {submission_id}: {e}")
                return ScreeningRequestResult(success=False, error="Landlord screening credentials unavailable")

        now = self.clock()
        reference_number = self._unique_reference_number(submission_id, now, sequence)
        package = invitation_id or (credentials.invitation_id if credentials else None)

        try:
            order = self.orders.create(
                submission_id=submission_id,
                reference_number=reference_number,
                person_id=person_id,
                invitation_id=package,
                next_status_check_at=now + timedelta(minutes=FIRST_STATUS_CHECK_MINUTES),
                poll_until=now + timedelta(hours=POLL_WINDOW_HOURS),
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Could not store screening order {reference_number} for submission {submission_id}: {e}")
            return ScreeningRequestResult(
                success=False, reference_number=reference_number, error="Could not store screening order",
            )
        logger.info(f"Created screening order {order.id} ({reference_number}) for submission {submission_id}")

        result = self.client.submit_screening_request(
            applicant,
            reference_number,
            build_callback_urls(base_url),
            invitation_id=package,
            credentials=credentials,
        )

        self.db.refresh(order)
        if result.success:
            # A webhook may already have moved the order past sent
            if order.status == ScreeningOrderStatus.NOT_SENT:
                self.reconciler.merge(order, status=ScreeningOrderStatus.SENT, report_id=result.report_id)
            else:
                self.reconciler.deriver.recompute(submission_id)
        else:
            self.reconciler.merge(
                order,
                status=ScreeningOrderStatus.ERROR,
                error_message=result.error or "Screening request rejected",
            )
        self.db.commit()

        if not result.success:
            logger.error(f"AppScreen rejected for {reference_number}: {result.error}")
            return ScreeningRequestResult(
                success=False,
                order_id=order.id,
                reference_number=reference_number,
                status=order.status,
                error=result.error,
            )

        logger.info(f"Screening order {reference_number} sent")
        return ScreeningRequestResult(
            success=True,
            order_id=order.id,
            reference_number=reference_number,
            status=order.status,
        )

    def _unique_reference_number(self, submission_id: str, now: datetime, sequence: Optional[int]) -> str:
        """Bump the suffix past references already issued in the same millisecond."""
        reference = generate_reference_number(submission_id, now, sequence)
        while self.orders.get_by_reference(reference) is not None:
            sequence = (sequence or 1) + 1
            reference = generate_reference_number(submission_id, now, sequence)
        return reference

    def process_screening_requests(
        self,
        submission_id: str,
        applicants: Sequence[ApplicantRequest],
        base_url: str,
        invitation_id: Optional[str] = None,
        credentials: Optional[ScreeningCredentials] = None,
    ) -> BatchRequestResult:
        """One order per applicant. Failures do not stop the rest of the batch."""
        batch = BatchRequestResult(submission_id=submission_id)
        numbered: List[Tuple[int, ApplicantRequest]] = list(enumerate(applicants, start=1))
        for sequence, request in numbered:
            batch.results.append(self.process_screening_request(
                submission_id,
                request.applicant,
                base_url,
                invitation_id=invitation_id,
                credentials=credentials,
                person_id=request.person_id,
                sequence=sequence if len(numbered) > 1 else None,
            ))
        return batch
