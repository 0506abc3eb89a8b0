"""
Credential Store

Resolves a landlord's own vendor account for a screening order.

The encryption primitive is not part of this engine: a decryptor callable
(ciphertext, iv) -> plaintext is injected. Any failure inside it surfaces
as CredentialDecryptionError so the poller can skip just that order.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...models.db_models import (
    CredentialStatus, LandlordScreeningCredentialDB, RentalSubmissionDB, ScreeningOrderDB,
)
from ...models.screening import ScreeningCredentials

logger = logging.getLogger(__name__)

Decryptor = Callable[[str, str], str]


class CredentialDecryptionError(Exception):
    """Stored credentials exist but could not be decrypted."""

    def __init__(self, owner_id: str, message: str):
        super().__init__(message)
        self.owner_id = owner_id


class CredentialStore:

    def __init__(self, db_session: Session, decryptor: Optional[Decryptor] = None):
        self.db = db_session
        self.decryptor = decryptor

    def get_record(self, owner_id: str) -> Optional[LandlordScreeningCredentialDB]:
        if not owner_id:
            return None
        return self.db.query(LandlordScreeningCredentialDB).filter(
            LandlordScreeningCredentialDB.user_id == owner_id
        ).first()

    def resolve_for_owner(self, owner_id: Optional[str]) -> Optional[ScreeningCredentials]:
        """
        Decrypted credentials for a landlord, or None when the landlord has
        no verified account on file (callers then use system credentials).

        Raises CredentialDecryptionError.
        """
        record = self.get_record(owner_id)
        if record is None:
            return None
        if record.status != CredentialStatus.VERIFIED:
            logger.info(f"Credentials for landlord {owner_id} are {record.status.value}; not using them")
            return None
        if not (record.encrypted_username and record.encrypted_password and record.encryption_iv):
            return None

        if self.decryptor is None:
            raise CredentialDecryptionError(owner_id, "No credential decryptor configured")

        try:
            username = self.decryptor(record.encrypted_username, record.encryption_iv)
            password = self.decryptor(record.encrypted_password, record.encryption_iv)
        except Exception as e:
            raise CredentialDecryptionError(owner_id, f"Failed to decrypt credentials: {e}") from e

        return ScreeningCredentials(
            username=username,
            password=password,
            invitation_id=record.default_invitation_id,
        )

    def resolve_for_order(self, order: ScreeningOrderDB) -> Optional[ScreeningCredentials]:
        """Follow order -> submission -> owner. Raises CredentialDecryptionError."""
        submission = self.db.query(RentalSubmissionDB).filter(
            RentalSubmissionDB.id == order.submission_id
        ).first()
        if submission is None or not submission.owner_id:
            return None
        return self.resolve_for_owner(submission.owner_id)
