"""
Screening Webhook Receiver

Merges vendor push notifications into screening orders.

Vendor delivery is unreliable: payloads arrive duplicated, garbled, or
for references we never issued. All of those are logged and dropped.
Nothing here creates an order, and nothing here raises.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import ScreeningOrderStatus
from ...models.screening import WebhookEvent, WebhookKind
from ..vendor.client import parse_result_webhook, parse_status_webhook
from .order_store import ScreeningOrderStore
from .reconciliation import OrderReconciler

logger = logging.getLogger(__name__)

WebhookParser = Callable[[str], Optional[WebhookEvent]]


@dataclass
class WebhookOutcome:
    handled: bool
    kind: WebhookKind
    reason: str
    reference_number: Optional[str] = None
    submission_id: Optional[str] = None
    order_status: Optional[ScreeningOrderStatus] = None


class ScreeningWebhookReceiver:
    """
    Usage:
        receiver = ScreeningWebhookReceiver(db)
        outcome = receiver.handle_status_webhook(xml_body)
        if outcome.handled:
            notify(outcome.submission_id)
    """

    def __init__(
        self,
        db_session: Session,
        status_parser: WebhookParser = parse_status_webhook,
        result_parser: WebhookParser = parse_result_webhook,
    ):
        self.db = db_session
        self.orders = ScreeningOrderStore(db_session)
        self.reconciler = OrderReconciler(db_session)
        self.status_parser = status_parser
        self.result_parser = result_parser

    def handle_status_webhook(self, xml_body: str) -> WebhookOutcome:
        return self._handle(WebhookKind.STATUS, self.status_parser, xml_body)

    def handle_result_webhook(self, xml_body: str) -> WebhookOutcome:
        return self._handle(WebhookKind.RESULT, self.result_parser, xml_body)

    def _handle(self, kind: WebhookKind, parser: WebhookParser, xml_body: str) -> WebhookOutcome:
        event = parser(xml_body)
        if event is None:
            logger.error(f"Failed to parse {kind.value} webhook; dropping")
            return WebhookOutcome(handled=False, kind=kind, reason="unparseable")

        try:
            return self.apply(event)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error processing {kind.value} webhook for {event.reference_number}: {e}")
            return WebhookOutcome(
                handled=False, kind=kind, reason="storage_error",
                reference_number=event.reference_number,
            )

    def apply(self, event: WebhookEvent) -> WebhookOutcome:
        """Merge an already-parsed event. Commits on success."""
        order = self.orders.get_by_reference(event.reference_number)
        if order is None:
            logger.warning(f"Screening order not found for reference: {event.reference_number}")
            return WebhookOutcome(
                handled=False, kind=event.kind, reason="order_not_found",
                reference_number=event.reference_number,
            )

        status = ScreeningOrderStatus.COMPLETE if event.kind == WebhookKind.RESULT else event.status
        raw_field = "raw_result_xml" if event.kind == WebhookKind.RESULT else "raw_status_xml"

        derivation = self.reconciler.merge(
            order,
            status=status,
            report_id=event.report_id,
            report_url=event.report_url,
            **{raw_field: event.raw_xml},
        )
        self.db.commit()

        logger.info(
            f"Applied {event.kind.value} webhook to order {order.id} "
            f"({event.reference_number}): status={status.value}, submission {derivation.reason}"
        )
        return WebhookOutcome(
            handled=True,
            kind=event.kind,
            reason="merged",
            reference_number=event.reference_number,
            submission_id=order.submission_id,
            order_status=status,
        )
