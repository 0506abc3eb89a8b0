"""
Screening Poll Scheduler

Active-pull reconciliation for orders whose webhooks never arrived.

AUTHORITY: SYSTEM - runs on a timer (ScreeningPoller) or on demand from the
internal scheduler endpoint. No user intervention.

Each tick:
- Scans orders with next_status_check_at <= now that are not terminal
- Stops scheduling orders whose poll window has closed
- Queries the vendor one order at a time, with a fixed pause between calls
- Merges readings through the same path as webhooks
- Backs off exponentially on failure, then gives up and marks the order error
"""
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ...models.db_models import ScreeningOrderDB, ScreeningOrderStatus, TERMINAL_ORDER_STATUSES
from ..vendor.client import DigitalDelveClient
from .clock import Clock, utc_now
from .credential_store import CredentialDecryptionError, CredentialStore, Decryptor
from .order_store import ScreeningOrderStore
from .reconciliation import OrderReconciler

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

POLL_INTERVAL_MINUTES = int(os.getenv("POLL_INTERVAL_MINUTES", "60"))
POLL_INITIAL_DELAY_MINUTES = int(os.getenv("POLL_INITIAL_DELAY_MINUTES", "5"))
POLL_MAX_DELAY_MINUTES = int(os.getenv("POLL_MAX_DELAY_MINUTES", "360"))
POLL_MAX_CONSECUTIVE_FAILURES = int(os.getenv("POLL_MAX_CONSECUTIVE_FAILURES", "5"))
POLL_ORDER_PAUSE_SECONDS = float(os.getenv("POLL_ORDER_PAUSE_SECONDS", "1"))
POLL_BATCH_SIZE = int(os.getenv("POLL_BATCH_SIZE", "100"))


@dataclass
class PollConfig:
    interval_minutes: int = POLL_INTERVAL_MINUTES
    initial_delay_minutes: int = POLL_INITIAL_DELAY_MINUTES
    max_delay_minutes: int = POLL_MAX_DELAY_MINUTES
    max_consecutive_failures: int = POLL_MAX_CONSECUTIVE_FAILURES
    order_pause_seconds: float = POLL_ORDER_PAUSE_SECONDS
    batch_size: int = POLL_BATCH_SIZE


def compute_backoff_delay(failures: int, initial_minutes: int, max_minutes: int) -> timedelta:
    """
    Delay before the next attempt after `failures` consecutive failures.

    min(initial * 2^(failures - 1), max): 5, 10, 20, 40 ... capped at 6h.
    """
    exponent = max(failures, 1) - 1
    return timedelta(minutes=min(initial_minutes * (2 ** exponent), max_minutes))


class ScreeningPollScheduler:
    """
    One polling pass over due screening orders.

    Commits per order, so one bad order never rolls back the others.
    """

    def __init__(
        self,
        db_session: Session,
        client: Optional[DigitalDelveClient] = None,
        decryptor: Optional[Decryptor] = None,
        clock: Clock = utc_now,
        sleep: Callable[[float], None] = time.sleep,
        config: Optional[PollConfig] = None,
    ):
        self.db = db_session
        self.client = client or DigitalDelveClient()
        self.orders = ScreeningOrderStore(db_session)
        self.credentials = CredentialStore(db_session, decryptor)
        self.reconciler = OrderReconciler(db_session)
        self.clock = clock
        self.sleep = sleep
        self.config = config or PollConfig()

    def get_due_orders(self, now: Optional[datetime] = None):
        return self.orders.list_due_for_poll(now or self.clock(), limit=self.config.batch_size)

    def run_tick(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run one polling pass.

        Returns a summary in the same shape as the other scheduler tasks:
        counts at the top level, per-order entries under details.
        """
        now = now or self.clock()
        due = self.get_due_orders(now)

        details = {
            "checked": [],
            "failed": [],
            "errored": [],
            "expired": [],
            "skipped": [],
            "errors": [],
        }
        completed = 0

        if due:
            logger.info(f"[Poller] Found {len(due)} screening orders due for a status check")

        for index, order in enumerate(due):
            if index > 0 and self.config.order_pause_seconds > 0:
                self.sleep(self.config.order_pause_seconds)

            order_id = order.id
            reference_number = order.reference_number
            try:
                outcome, info = self.poll_order(order, now)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                logger.error(f"[Poller] Error polling order {order_id} ({reference_number}): {e}")
                details["errors"].append({
                    "order_id": order_id,
                    "reference_number": reference_number,
                    "error": str(e),
                })
                continue

            details[outcome].append({"order_id": order_id, "reference_number": reference_number, **info})
            if info.get("status") == ScreeningOrderStatus.COMPLETE.value:
                completed += 1

        return {
            "task": "screening_poll",
            "run_date": now.isoformat(),
            "orders_due": len(due),
            "checked": len(details["checked"]),
            "completed": completed,
            "failed": len(details["failed"]),
            "errored": len(details["errored"]),
            "expired": len(details["expired"]),
            "skipped": len(details["skipped"]),
            "errors": len(details["errors"]),
            "details": details,
        }

    def poll_order(self, order: ScreeningOrderDB, now: datetime):
        """
        Check one order and write the result. Does not commit.

        Returns (outcome, info) where outcome is one of
        checked / failed / errored / expired / skipped.
        """
        if order.poll_until is not None and order.poll_until < now:
            self.orders.update(order, next_status_check_at=None)
            logger.warning(
                f"[Poller] Poll window closed for order {order.id} ({order.reference_number}); "
                f"leaving status {order.status.value}, waiting on webhooks only"
            )
            return "expired", {"status": order.status.value}

        try:
            credentials = self.credentials.resolve_for_order(order)
        except CredentialDecryptionError as e:
            logger.warning(f"[Poller] Skipping order {order.id}: landlord {e.owner_id} credentials unusable ({e})")
            return "skipped", {"reason": str(e)}

        result = self.client.check_order_status(order.reference_number, credentials)
        if not result.success:
            return self._record_failure(order, now, result.error or "Status check failed")

        status = result.order_status
        effective = status or order.status
        fields = {
            "last_status_check_at": now,
            "consecutive_failures": 0,
            "next_status_check_at": (
                None if effective in TERMINAL_ORDER_STATUSES
                else now + timedelta(minutes=self.config.interval_minutes)
            ),
        }
        if result.raw_xml:
            fields["raw_status_xml"] = result.raw_xml
        if status == ScreeningOrderStatus.ERROR:
            fields["error_message"] = "Vendor reported the order in error"

        derivation = self.reconciler.merge(
            order,
            status=status,
            report_id=result.report_id,
            report_url=result.report_url,
            **fields,
        )
        logger.info(
            f"[Poller] Order {order.id} ({order.reference_number}): vendor says "
            f"{result.status.value if result.status else 'unknown'}, submission {derivation.reason}"
        )
        return "checked", {
            "status": order.status.value,
            "vendor_status": result.status.value if result.status else None,
            "submission": derivation.to_dict(),
        }

    def _record_failure(self, order: ScreeningOrderDB, now: datetime, error: str):
        failures = (order.consecutive_failures or 0) + 1

        if failures >= self.config.max_consecutive_failures:
            message = f"Status check failed {failures} consecutive times; giving up. Last error: {error}"
            self.reconciler.merge(
                order,
                status=ScreeningOrderStatus.ERROR,
                error_message=message,
                consecutive_failures=failures,
                last_status_check_at=now,
                next_status_check_at=None,
            )
            logger.error(f"[Poller] Order {order.id} ({order.reference_number}) marked error: {message}")
            return "errored", {"status": order.status.value, "failures": failures, "error": error}

        delay = compute_backoff_delay(
            failures, self.config.initial_delay_minutes, self.config.max_delay_minutes,
        )
        self.orders.update(
            order,
            consecutive_failures=failures,
            last_status_check_at=now,
            next_status_check_at=now + delay,
        )
        logger.warning(
            f"[Poller] Status check failed for order {order.id} ({failures} in a row), "
            f"retrying in {int(delay.total_seconds() // 60)} min: {error}"
        )
        return "failed", {
            "status": order.status.value,
            "failures": failures,
            "next_status_check_at": order.next_status_check_at.isoformat(),
            "error": error,
        }
