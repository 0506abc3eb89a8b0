"""
Tenant Screening Engine - API Routers
"""
from .webhooks import router as webhooks_router
from .screening import router as screening_router
from .scheduler import router as scheduler_router

__all__ = ['webhooks_router', 'screening_router', 'scheduler_router']
