"""
Scheduler API Routes

Internal endpoints for system-automatic tasks.
Screening status polling and submission status recomputation.
"""
import threading

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_credential_decryptor, get_vendor_client, verify_internal_key
from ..services.screening import (
    ScreeningOrderStore,
    ScreeningPollScheduler,
    SubmissionStatusDeriver,
    utc_now,
)
from ..services.vendor import DigitalDelveClient


router = APIRouter(prefix="/internal", tags=["scheduler"])

# Guards manual ticks when no background poller is running
_manual_tick_lock = threading.Lock()


# =============================================================================
# SCHEDULER ENDPOINTS (SYSTEM-ONLY)
# =============================================================================

@router.post("/screening-poll", response_model=dict)
def run_screening_poll(
    request: Request,
    db: Session = Depends(get_db),
    client: DigitalDelveClient = Depends(get_vendor_client),
    decryptor=Depends(get_credential_decryptor),
    _: bool = Depends(verify_internal_key),
):
    """
    Run one screening poll tick now.

    System-automatic - no user confirmation required.
    Goes through the running poller when there is one, so a manual tick
    never overlaps a timed one. Runs in the threadpool since the tick
    blocks on vendor calls.
    """
    poller = getattr(request.app.state, "screening_poller", None)
    if poller is not None:
        return poller.run_once()

    if not _manual_tick_lock.acquire(blocking=False):
        return {
            "task": "screening_poll",
            "run_date": utc_now().isoformat(),
            "skipped_tick": True,
            "reason": "previous tick still running",
        }
    try:
        scheduler = ScreeningPollScheduler(db, client=client, decryptor=decryptor)
        return scheduler.run_tick()
    finally:
        _manual_tick_lock.release()


@router.post("/submissions/{submission_id}/recompute", response_model=dict)
async def recompute_submission_status(
    submission_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Re-derive a submission's status from its screening orders.

    Never moves a submission backwards and never touches a decided one.
    """
    result = SubmissionStatusDeriver(db).recompute(submission_id)
    if result.reason == "submission_not_found":
        raise HTTPException(status_code=404, detail="Submission not found")

    db.commit()

    return result.to_dict()


# =============================================================================
# SCHEDULER STATUS ENDPOINTS (READ-ONLY)
# =============================================================================

@router.get("/screening-poll/due", response_model=dict)
async def get_due_orders(
    limit: int = 100,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """
    Orders the next poll tick would check.
    """
    now = utc_now()
    due = ScreeningOrderStore(db).list_due_for_poll(now, limit=limit)

    return {
        "as_of": now.isoformat(),
        "count": len(due),
        "orders": [
            {
                "order_id": o.id,
                "reference_number": o.reference_number,
                "status": o.status.value,
                "next_status_check_at": o.next_status_check_at.isoformat(),
                "poll_until": o.poll_until.isoformat() if o.poll_until else None,
                "consecutive_failures": o.consecutive_failures,
            }
            for o in due
        ],
    }


@router.get("/screening-poll/status", response_model=dict)
async def get_poller_status(
    request: Request,
    _: bool = Depends(verify_internal_key),
):
    """Background poller state."""
    poller = getattr(request.app.state, "screening_poller", None)
    if poller is None:
        return {"running": False, "configured": False}
    return {"configured": True, **poller.get_status()}
