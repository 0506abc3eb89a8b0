"""
Tenant Screening Engine - SQLAlchemy ORM Models
PostgreSQL database models for screening orders and the submission
records they reconcile into.
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class ScreeningOrderStatus(str, Enum):
    """Persisted status of a single screening order."""
    NOT_SENT = "not_sent"
    SENT = "sent"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    ERROR = "error"


# Orders in these states are never polled again
TERMINAL_ORDER_STATUSES = (ScreeningOrderStatus.COMPLETE, ScreeningOrderStatus.ERROR)


class SubmissionStatus(str, Enum):
    """
    Aggregate status of a rental submission.

    Declaration order is the precedence order; reconciliation may only
    move a submission forward along it.
    """
    STARTED = "started"
    SUBMITTED = "submitted"
    SCREENING_REQUESTED = "screening_requested"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


SUBMISSION_STATUS_PRECEDENCE = list(SubmissionStatus)


class DecisionType(str, Enum):
    """Final human decision on a submission."""
    APPROVED = "approved"
    DENIED = "denied"


class CredentialStatus(str, Enum):
    """Verification state of a landlord's vendor credentials."""
    NOT_CONFIGURED = "not_configured"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    FAILED = "failed"


# =============================================================================
# SUBMISSION MODELS (owned by the rental application flow)
# =============================================================================

class RentalSubmissionDB(Base):
    """One rental application flow; may hold several screened applicants."""
    __tablename__ = "rental_submissions"

    id = Column(String(36), primary_key=True)  # UUID
    owner_id = Column(String(36), nullable=True, index=True)  # Landlord user id
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=lambda e: [m.value for m in e]),
        default=SubmissionStatus.STARTED,
        nullable=False,
    )
    submitted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    screening_orders = relationship("ScreeningOrderDB", back_populates="submission", cascade="all, delete-orphan")
    decision = relationship("RentalDecisionDB", back_populates="submission", uselist=False, cascade="all, delete-orphan")


class RentalDecisionDB(Base):
    """Approve/deny decision. Its existence locks the submission."""
    __tablename__ = "rental_decisions"

    id = Column(String(36), primary_key=True)  # UUID
    submission_id = Column(
        String(36), ForeignKey("rental_submissions.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    decision = Column(SQLEnum(DecisionType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    decided_by = Column(String(36), nullable=True)
    decided_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    submission = relationship("RentalSubmissionDB", back_populates="decision")


# =============================================================================
# SCREENING ORDER MODELS
# =============================================================================

class ScreeningOrderDB(Base):
    """
    One outstanding background check for one applicant.

    reference_number is the only key the vendor echoes back, so it is
    assigned once at creation and never changes.
    next_status_check_at = NULL means the poller ignores this order.
    """
    __tablename__ = "rental_screening_orders"

    id = Column(String(36), primary_key=True)  # UUID
    submission_id = Column(
        String(36), ForeignKey("rental_submissions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    person_id = Column(String(36), nullable=True)  # Applicant being screened
    reference_number = Column(String(100), nullable=False, unique=True, index=True)
    invitation_id = Column(Text, nullable=True)  # Vendor package selector

    status = Column(
        SQLEnum(ScreeningOrderStatus, values_callable=lambda e: [m.value for m in e]),
        default=ScreeningOrderStatus.NOT_SENT,
        nullable=False,
    )
    report_id = Column(Text, nullable=True)
    report_url = Column(Text, nullable=True)
    raw_status_xml = Column(Text, nullable=True)  # Last status push or poll payload
    raw_result_xml = Column(Text, nullable=True)  # Last result push payload
    error_message = Column(Text, nullable=True)

    # Polling bookkeeping
    last_status_check_at = Column(DateTime, nullable=True)
    next_status_check_at = Column(DateTime, nullable=True, index=True)
    poll_until = Column(DateTime, nullable=True)
    consecutive_failures = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    submission = relationship("RentalSubmissionDB", back_populates="screening_orders")


# =============================================================================
# CREDENTIAL MODELS
# =============================================================================

class LandlordScreeningCredentialDB(Base):
    """Per-landlord vendor account, stored encrypted."""
    __tablename__ = "landlord_screening_credentials"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), nullable=False, unique=True, index=True)
    encrypted_username = Column(Text, nullable=False)
    encrypted_password = Column(Text, nullable=False)
    encryption_iv = Column(Text, nullable=False)
    default_invitation_id = Column(String(100), nullable=True)
    status = Column(
        SQLEnum(CredentialStatus, values_callable=lambda e: [m.value for m in e]),
        default=CredentialStatus.PENDING_VERIFICATION,
        nullable=False,
    )
    last_verified_at = Column(DateTime, nullable=True)
    last_error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
