"""
Tenant Screening Engine - Shared FastAPI Dependencies

Internal API key validation and the vendor collaborators routes need.
Tests swap these out with app.dependency_overrides.
"""
import os
from typing import Optional

from fastapi import Header, HTTPException

from .services.screening.credential_store import Decryptor
from .services.vendor import DigitalDelveClient

INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "scheduler-internal-key-change-in-production")


async def verify_internal_key(x_internal_key: str = Header(...)):
    """Verify internal API key for system and operator endpoints."""
    if x_internal_key != INTERNAL_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid internal API key")
    return True


def get_vendor_client() -> DigitalDelveClient:
    return DigitalDelveClient()


def get_credential_decryptor() -> Optional[Decryptor]:
    """
    Landlord credential decryption is provided by the hosting application.
    Without one, landlords with stored credentials cannot be served.
    """
    return None
