"""
Screening API Routes

Operator-facing endpoints for ordering screenings and reading their state.
Guarded by the internal API key; landlord authentication belongs to the
host application.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_credential_decryptor, get_vendor_client, verify_internal_key
from ..models import ApplicantInfo, ScreeningCredentials
from ..services.screening import (
    ApplicantRequest,
    CredentialDecryptionError,
    CredentialStore,
    ScreeningOrderService,
    ScreeningOrderStore,
    SubmissionStore,
)
from ..services.vendor import DigitalDelveClient


router = APIRouter(prefix="/screening", tags=["screening"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class VerifyCredentialsRequest(BaseModel):
    """Vendor username/password to validate with AuthOnly."""
    username: str = Field(..., description="Vendor account username")
    password: str = Field(..., description="Vendor account password")


class InvitationsRequest(BaseModel):
    """Whose vendor account to list packages for. Empty means the system account."""
    username: Optional[str] = Field(None, description="Vendor account username")
    password: Optional[str] = Field(None, description="Vendor account password")
    owner_id: Optional[str] = Field(None, description="Landlord whose stored credentials to use")


class ApplicantPayload(BaseModel):
    first_name: str
    last_name: str
    email: str
    person_id: Optional[str] = Field(None, description="Applicant id within the submission")


class CreateOrdersRequest(BaseModel):
    """Order one screening per applicant."""
    base_url: str = Field(..., description="Public base URL the vendor will call back")
    invitation_id: Optional[str] = Field(None, description="Vendor package; defaults to the account's")
    applicants: List[ApplicantPayload] = Field(..., min_length=1)


class ScreeningOrderResponse(BaseModel):
    id: str
    submission_id: str
    person_id: Optional[str]
    reference_number: str
    invitation_id: Optional[str]
    status: str
    report_id: Optional[str]
    report_url: Optional[str]
    error_message: Optional[str]
    last_status_check_at: Optional[datetime]
    next_status_check_at: Optional[datetime]
    poll_until: Optional[datetime]
    consecutive_failures: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


def order_to_response(order) -> ScreeningOrderResponse:
    return ScreeningOrderResponse(
        id=order.id,
        submission_id=order.submission_id,
        person_id=order.person_id,
        reference_number=order.reference_number,
        invitation_id=order.invitation_id,
        status=order.status.value,
        report_id=order.report_id,
        report_url=order.report_url,
        error_message=order.error_message,
        last_status_check_at=order.last_status_check_at,
        next_status_check_at=order.next_status_check_at,
        poll_until=order.poll_until,
        consecutive_failures=order.consecutive_failures or 0,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _landlord_credentials(store: CredentialStore, owner_id: Optional[str]) -> Optional[ScreeningCredentials]:
    try:
        return store.resolve_for_owner(owner_id)
    except CredentialDecryptionError as e:
        raise HTTPException(status_code=503, detail=f"Landlord screening credentials unavailable: {e}")


# =============================================================================
# VENDOR ACCOUNT ENDPOINTS
# =============================================================================

@router.post("/credentials/verify", response_model=dict)
def verify_credentials(
    request: VerifyCredentialsRequest,
    client: DigitalDelveClient = Depends(get_vendor_client),
    _: bool = Depends(verify_internal_key),
):
    """Check a vendor username/password before it is stored."""
    result = client.verify_credentials(request.username, request.password)
    return {
        "success": result.success,
        "message": result.message,
        "error": result.error,
    }


@router.post("/invitations", response_model=dict)
def list_invitations(
    request: InvitationsRequest,
    db: Session = Depends(get_db),
    client: DigitalDelveClient = Depends(get_vendor_client),
    decryptor=Depends(get_credential_decryptor),
    _: bool = Depends(verify_internal_key),
):
    """Screening packages the account may order."""
    credentials = None
    if request.username and request.password:
        credentials = ScreeningCredentials(username=request.username, password=request.password)
    elif request.owner_id:
        credentials = _landlord_credentials(CredentialStore(db, decryptor), request.owner_id)

    result = client.retrieve_invitations(credentials)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error or "Failed to retrieve invitations")

    return {
        "invitations": [
            {"id": i.id, "name": i.name, "description": i.description}
            for i in result.invitations
        ],
    }


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@router.post("/submissions/{submission_id}/orders", response_model=dict)
def create_orders(
    submission_id: str,
    request: CreateOrdersRequest,
    db: Session = Depends(get_db),
    client: DigitalDelveClient = Depends(get_vendor_client),
    decryptor=Depends(get_credential_decryptor),
    _: bool = Depends(verify_internal_key),
):
    """
    Send one AppScreen per applicant.

    Orders the vendor rejects are still created (status error) so the
    attempt is visible; they are reported with success=false.
    """
    if SubmissionStore(db).get(submission_id) is None:
        raise HTTPException(status_code=404, detail="Submission not found")

    service = ScreeningOrderService(db, client=client, decryptor=decryptor)
    batch = service.process_screening_requests(
        submission_id,
        [
            ApplicantRequest(
                applicant=ApplicantInfo(first_name=a.first_name, last_name=a.last_name, email=a.email),
                person_id=a.person_id,
            )
            for a in request.applicants
        ],
        base_url=request.base_url,
        invitation_id=request.invitation_id,
    )

    return {
        "submission_id": submission_id,
        "requested": len(batch.results),
        "sent": batch.sent,
        "results": [r.to_dict() for r in batch.results],
        "submission_status": SubmissionStore(db).get_status(submission_id).value,
    }


@router.get("/submissions/{submission_id}/orders", response_model=List[ScreeningOrderResponse])
async def list_orders(
    submission_id: str,
    db: Session = Depends(get_db),
    _: bool = Depends(verify_internal_key),
):
    """All screening orders for a submission, oldest first."""
    if SubmissionStore(db).get(submission_id) is None:
        raise HTTPException(status_code=404, detail="Submission not found")

    return [order_to_response(o) for o in ScreeningOrderStore(db).list_for_submission(submission_id)]


@router.get("/orders/{reference_number}/report-url", response_model=dict)
def get_report_url(
    reference_number: str,
    db: Session = Depends(get_db),
    client: DigitalDelveClient = Depends(get_vendor_client),
    decryptor=Depends(get_credential_decryptor),
    _: bool = Depends(verify_internal_key),
):
    """SSO link to the vendor's report viewer for this order."""
    order = ScreeningOrderStore(db).get_by_reference(reference_number)
    if order is None:
        raise HTTPException(status_code=404, detail="Screening order not found")

    store = CredentialStore(db, decryptor)
    try:
        credentials = store.resolve_for_order(order)
    except CredentialDecryptionError as e:
        raise HTTPException(status_code=503, detail=f"Landlord screening credentials unavailable: {e}")

    result = client.get_view_report_url(reference_number, credentials)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error or "Failed to get report URL")

    return {
        "reference_number": reference_number,
        "status": order.status.value,
        "url": result.url,
    }
