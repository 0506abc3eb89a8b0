"""Tenant Screening Engine - screening order reconciliation backend"""

__version__ = "1.0.0"
