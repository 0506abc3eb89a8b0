"""
Screening Order Reconciliation

Keeps screening orders and their submissions in step with the vendor
through two channels: webhook push and scheduled polling.
"""

from .clock import utc_now
from .order_store import ScreeningOrderStore
from .submission_store import SubmissionStore
from .credential_store import CredentialStore, CredentialDecryptionError
from .status_deriver import SubmissionStatusDeriver, DerivationResult, derive_candidate
from .reconciliation import OrderReconciler
from .webhook_receiver import ScreeningWebhookReceiver, WebhookOutcome
from .poll_scheduler import ScreeningPollScheduler, PollConfig, compute_backoff_delay
from .poller import ScreeningPoller
from .order_service import (
    ScreeningOrderService,
    ScreeningRequestResult,
    ApplicantRequest,
    BatchRequestResult,
    build_callback_urls,
    generate_reference_number,
    webhook_secret,
)

__all__ = [
    'utc_now',
    'ScreeningOrderStore',
    'SubmissionStore',
    'CredentialStore',
    'CredentialDecryptionError',
    'SubmissionStatusDeriver',
    'DerivationResult',
    'derive_candidate',
    'OrderReconciler',
    'ScreeningWebhookReceiver',
    'WebhookOutcome',
    'ScreeningPollScheduler',
    'PollConfig',
    'compute_backoff_delay',
    'ScreeningPoller',
    'ScreeningOrderService',
    'ScreeningRequestResult',
    'ApplicantRequest',
    'BatchRequestResult',
    'build_callback_urls',
    'generate_reference_number',
    'webhook_secret',
]
