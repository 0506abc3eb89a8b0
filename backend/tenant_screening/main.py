"""
Tenant Screening Engine - FastAPI Application

Main entry point for the screening order reconciliation backend.

Architecture:
- AppScreen order      → ScreeningOrderService → rental_screening_orders
- Vendor push (XML)    → ScreeningWebhookReceiver ─┐
- Timed pull (XML)     → ScreeningPollScheduler  ──┴→ OrderReconciler → SubmissionStatusDeriver
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .database import SessionLocal, init_db
from .dependencies import get_credential_decryptor
from .routers import webhooks_router, screening_router, scheduler_router
from .services.screening import ScreeningPoller

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SCREENING_POLLER_ENABLED = os.getenv("SCREENING_POLLER_ENABLED", "true").lower() in ("1", "true", "yes")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and start the screening poller."""
    init_db()

    poller = None
    if SCREENING_POLLER_ENABLED:
        poller = ScreeningPoller(SessionLocal, decryptor=get_credential_decryptor())
        poller.start()
    else:
        logger.info("Screening poller disabled (SCREENING_POLLER_ENABLED)")
    app.state.screening_poller = poller

    yield

    if poller is not None:
        poller.stop()

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Tenant Screening Engine",
    description="""
    Tenant Screening Engine - Screening Order Reconciliation

    Keeps background-check orders placed with DigitalDelve in step with the
    rental submissions they belong to.

    ## Channels
    1. **Webhooks**: vendor POSTs status and result XML to /api/webhooks/digitaldelve
    2. **Polling**: orders without news are checked with RetrieveOrderStatus,
       hourly, backing off on failure, for up to 48 hours

    ## Key Principles
    - Reference numbers are assigned once and never change
    - Both channels merge through the same path
    - A submission's status only moves forward, and never after a decision
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(webhooks_router)
app.include_router(screening_router)
app.include_router(scheduler_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Tenant Screening Engine",
        "version": __version__,
        "description": "Screening order reconciliation",
        "docs": "/docs",
        "channels": {
            "webhooks": "/api/webhooks/digitaldelve/{status,result}",
            "polling": "/internal/screening-poll",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# For running with: python -m tenant_screening.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
