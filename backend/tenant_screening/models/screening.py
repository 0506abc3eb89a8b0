"""
Tenant Screening Engine - Vendor Exchange Models

Normalized shapes produced by the vendor protocol client. No component
outside services/vendor sees raw vendor XML fields; they only see these.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .db_models import ScreeningOrderStatus


# =============================================================================
# ENUMS
# =============================================================================

class VendorOrderStatus(str, Enum):
    """
    Status reading returned by a vendor status query.

    invited and not_found only exist on the poll channel and are mapped
    onto ScreeningOrderStatus before anything is persisted.
    """
    INVITED = "invited"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    NOT_FOUND = "not_found"
    ERROR = "error"


# not_found maps to None: the order keeps whatever status it already has
VENDOR_TO_ORDER_STATUS = {
    VendorOrderStatus.INVITED: ScreeningOrderStatus.SENT,
    VendorOrderStatus.IN_PROGRESS: ScreeningOrderStatus.IN_PROGRESS,
    VendorOrderStatus.COMPLETE: ScreeningOrderStatus.COMPLETE,
    VendorOrderStatus.NOT_FOUND: None,
    VendorOrderStatus.ERROR: ScreeningOrderStatus.ERROR,
}


class WebhookKind(str, Enum):
    STATUS = "status"
    RESULT = "result"


# =============================================================================
# REQUEST SIDE
# =============================================================================

@dataclass
class ScreeningCredentials:
    username: str
    password: str
    invitation_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"ScreeningCredentials(username={self.username!r}, invitation_id={self.invitation_id!r})"


@dataclass
class ApplicantInfo:
    """
    Identity fields sent with an AppScreen request.

    Full-integration orders only carry name and email; the vendor collects
    SSN, DOB and address from the applicant on its own portal.
    """
    first_name: str
    last_name: str
    email: str


@dataclass
class CallbackUrls:
    status_post_url: str
    result_post_url: str


# =============================================================================
# RESPONSE SIDE
# =============================================================================

@dataclass
class VendorResult:
    """Outcome of an SSO call that only succeeds or fails."""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    report_id: Optional[str] = None
    raw_xml: Optional[str] = None


@dataclass
class Invitation:
    id: str
    name: str = ""
    description: str = ""


@dataclass
class InvitationsResult:
    success: bool
    invitations: List[Invitation] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class OrderStatusResult:
    success: bool
    status: Optional[VendorOrderStatus] = None
    report_id: Optional[str] = None
    report_url: Optional[str] = None
    raw_xml: Optional[str] = None
    error: Optional[str] = None

    @property
    def order_status(self) -> Optional[ScreeningOrderStatus]:
        if self.status is None:
            return None
        return VENDOR_TO_ORDER_STATUS[self.status]


@dataclass
class ReportUrlResult:
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class WebhookEvent:
    """A parsed push notification, keyed by our reference number."""
    kind: WebhookKind
    reference_number: str
    status: ScreeningOrderStatus
    raw_status: str
    raw_xml: str
    report_id: Optional[str] = None
    report_url: Optional[str] = None
