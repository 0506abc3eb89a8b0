"""
Screening Order Store

Persistence boundary for ScreeningOrderDB. Callers own the transaction;
the store only flushes so ids and defaults are populated.
"""
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ...models.db_models import (
    ScreeningOrderDB, ScreeningOrderStatus, TERMINAL_ORDER_STATUSES,
)
from .clock import utc_now

# Columns update() is allowed to touch; reference_number is deliberately absent
MUTABLE_FIELDS = frozenset({
    "status", "invitation_id", "report_id", "report_url",
    "raw_status_xml", "raw_result_xml", "error_message",
    "last_status_check_at", "next_status_check_at", "poll_until",
    "consecutive_failures",
})


class ScreeningOrderStore:
    """Create, look up, update and scan screening orders."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def create(
        self,
        submission_id: str,
        reference_number: str,
        person_id: Optional[str] = None,
        invitation_id: Optional[str] = None,
        next_status_check_at: Optional[datetime] = None,
        poll_until: Optional[datetime] = None,
    ) -> ScreeningOrderDB:
        order = ScreeningOrderDB(
            id=str(uuid4()),
            submission_id=submission_id,
            person_id=person_id,
            reference_number=reference_number,
            invitation_id=invitation_id,
            status=ScreeningOrderStatus.NOT_SENT,
            next_status_check_at=next_status_check_at,
            poll_until=poll_until,
            consecutive_failures=0,
        )
        self.db.add(order)
        self.db.flush()
        return order

    def get(self, order_id: str) -> Optional[ScreeningOrderDB]:
        return self.db.query(ScreeningOrderDB).filter(ScreeningOrderDB.id == order_id).first()

    def get_by_reference(self, reference_number: str) -> Optional[ScreeningOrderDB]:
        if not reference_number:
            return None
        return self.db.query(ScreeningOrderDB).filter(
            ScreeningOrderDB.reference_number == reference_number
        ).first()

    def list_for_submission(self, submission_id: str) -> List[ScreeningOrderDB]:
        return self.db.query(ScreeningOrderDB).filter(
            ScreeningOrderDB.submission_id == submission_id
        ).order_by(ScreeningOrderDB.created_at).all()

    def list_due_for_poll(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[ScreeningOrderDB]:
        """Orders whose next check is due and that are not terminal, oldest first."""
        now = now or utc_now()
        query = self.db.query(ScreeningOrderDB).filter(
            ScreeningOrderDB.next_status_check_at.isnot(None),
            ScreeningOrderDB.next_status_check_at <= now,
            ScreeningOrderDB.status.notin_(TERMINAL_ORDER_STATUSES),
        ).order_by(ScreeningOrderDB.next_status_check_at)
        if limit:
            query = query.limit(limit)
        return query.all()

    def update(self, order: ScreeningOrderDB, **fields) -> ScreeningOrderDB:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update screening order fields: {sorted(unknown)}")

        for name, value in fields.items():
            setattr(order, name, value)

        # Terminal orders leave the poll scan for good
        if order.status in TERMINAL_ORDER_STATUSES:
            order.next_status_check_at = None

        order.updated_at = utc_now()
        self.db.flush()
        return order
