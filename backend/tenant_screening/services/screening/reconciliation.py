"""
Order Reconciliation

The single merge path shared by the push (webhook) and pull (poll)
channels. Status is last-write-wins per channel; report identifiers are
only ever filled in, never blanked; the submission aggregate is re-derived
after every merge.
"""
from typing import Optional

from sqlalchemy.orm import Session

from ...models.db_models import ScreeningOrderDB, ScreeningOrderStatus
from .order_store import ScreeningOrderStore
from .status_deriver import DerivationResult, SubmissionStatusDeriver


class OrderReconciler:

    def __init__(self, db_session: Session):
        self.db = db_session
        self.orders = ScreeningOrderStore(db_session)
        self.deriver = SubmissionStatusDeriver(db_session)

    def merge(
        self,
        order: ScreeningOrderDB,
        status: Optional[ScreeningOrderStatus] = None,
        report_id: Optional[str] = None,
        report_url: Optional[str] = None,
        **fields,
    ) -> DerivationResult:
        """
        Apply one observation to an order and re-derive its submission.

        status=None keeps the current status. Extra keyword fields (raw XML,
        poll bookkeeping, error_message) are written as given.
        """
        if status is not None:
            fields["status"] = status
            if status != ScreeningOrderStatus.ERROR:
                fields.setdefault("error_message", None)

        fields["report_id"] = report_id or order.report_id
        fields["report_url"] = report_url or order.report_url

        self.orders.update(order, **fields)
        return self.deriver.recompute(order.submission_id)
