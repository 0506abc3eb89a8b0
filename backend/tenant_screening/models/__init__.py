"""Tenant Screening Engine - Data Models"""
from .db_models import (
    # Enums
    ScreeningOrderStatus, SubmissionStatus, DecisionType, CredentialStatus,
    TERMINAL_ORDER_STATUSES, SUBMISSION_STATUS_PRECEDENCE,
    # Tables
    RentalSubmissionDB, RentalDecisionDB, ScreeningOrderDB, LandlordScreeningCredentialDB,
)
from .screening import (
    VendorOrderStatus, WebhookKind,
    ScreeningCredentials, ApplicantInfo, CallbackUrls,
    VendorResult, Invitation, InvitationsResult, OrderStatusResult, ReportUrlResult,
    WebhookEvent,
)

__all__ = [
    "ScreeningOrderStatus", "SubmissionStatus", "DecisionType", "CredentialStatus",
    "TERMINAL_ORDER_STATUSES", "SUBMISSION_STATUS_PRECEDENCE",
    "RentalSubmissionDB", "RentalDecisionDB", "ScreeningOrderDB", "LandlordScreeningCredentialDB",
    "VendorOrderStatus", "WebhookKind",
    "ScreeningCredentials", "ApplicantInfo", "CallbackUrls",
    "VendorResult", "Invitation", "InvitationsResult", "OrderStatusResult", "ReportUrlResult",
    "WebhookEvent",
]
