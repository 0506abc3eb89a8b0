"""
Vendor Webhook Routes

DigitalDelve POSTs XML here when an order changes (status) and when the
report is ready (result). The callback URLs carry a shared-secret token.

Once the token checks out the response is always 200, handled or not,
so a payload we cannot use does not turn into a vendor retry storm.
"""
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.screening import ScreeningWebhookReceiver, webhook_secret


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks/digitaldelve", tags=["webhooks"])


def verify_webhook_token(token: Optional[str] = Query(None)):
    """Constant-time token check. No configured secret means no check."""
    secret = webhook_secret()
    if not secret:
        return True
    if not token or not hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8")):
        logger.warning("Rejected DigitalDelve webhook with missing or invalid token")
        raise HTTPException(status_code=401, detail="Invalid webhook token")
    return True


async def _read_xml(request: Request) -> str:
    body = await request.body()
    return body.decode("utf-8", errors="replace")


@router.post("/status", response_model=dict)
async def receive_status_webhook(
    request: Request,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_webhook_token),
):
    """Interim order status from the vendor."""
    xml_body = await _read_xml(request)
    outcome = ScreeningWebhookReceiver(db).handle_status_webhook(xml_body)
    return {
        "received": True,
        "handled": outcome.handled,
        "submission_id": outcome.submission_id,
    }


@router.post("/result", response_model=dict)
async def receive_result_webhook(
    request: Request,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_webhook_token),
):
    """Final report notification. Always completes the order."""
    xml_body = await _read_xml(request)
    outcome = ScreeningWebhookReceiver(db).handle_result_webhook(xml_body)
    return {
        "received": True,
        "handled": outcome.handled,
        "submission_id": outcome.submission_id,
    }
