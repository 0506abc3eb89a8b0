"""
Shared fixtures for the screening engine tests.

Every test gets a fresh in-memory SQLite database with the ORM schema,
so stores, the deriver and the schedulers run against real queries.
"""
import os

# Keep the app module off PostgreSQL and the background poller off
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCREENING_POLLER_ENABLED"] = "false"

from datetime import datetime, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tenant_screening.database import Base
from tenant_screening.models import db_models  # noqa: F401
from tenant_screening.models.db_models import (
    CredentialStatus,
    DecisionType,
    LandlordScreeningCredentialDB,
    RentalDecisionDB,
    RentalSubmissionDB,
    ScreeningOrderDB,
    ScreeningOrderStatus,
    SubmissionStatus,
)

NOW = datetime(2025, 3, 10, 12, 0, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_submission(db):
    def _make(status=SubmissionStatus.SUBMITTED, owner_id=None, submission_id=None):
        submission = RentalSubmissionDB(
            id=submission_id or str(uuid4()),
            owner_id=owner_id,
            status=status,
        )
        db.add(submission)
        db.commit()
        return submission
    return _make


@pytest.fixture
def make_order(db):
    def _make(
        submission,
        status=ScreeningOrderStatus.SENT,
        reference_number=None,
        next_status_check_at=NOW - timedelta(minutes=1),
        poll_until=NOW + timedelta(hours=47),
        consecutive_failures=0,
        report_id=None,
        report_url=None,
    ):
        order = ScreeningOrderDB(
            id=str(uuid4()),
            submission_id=submission.id,
            reference_number=reference_number or f"LS-{submission.id[:8]}-{uuid4().int % 10**13}",
            status=status,
            next_status_check_at=next_status_check_at,
            poll_until=poll_until,
            consecutive_failures=consecutive_failures,
            report_id=report_id,
            report_url=report_url,
        )
        db.add(order)
        db.commit()
        return order
    return _make


@pytest.fixture
def record_decision(db):
    def _record(submission, decision=DecisionType.APPROVED):
        db.add(RentalDecisionDB(id=str(uuid4()), submission_id=submission.id, decision=decision))
        db.commit()
    return _record


@pytest.fixture
def store_landlord_credentials(db):
    def _store(owner_id, status=CredentialStatus.VERIFIED, invitation_id=None):
        db.add(LandlordScreeningCredentialDB(
            id=str(uuid4()),
            user_id=owner_id,
            encrypted_username="enc-user",
            encrypted_password="enc-pass",
            encryption_iv="iv",
            default_invitation_id=invitation_id,
            status=status,
        ))
        db.commit()
    return _store


@pytest.fixture
def mock_client():
    """Vendor client double; tests set return values per operation."""
    return MagicMock()
