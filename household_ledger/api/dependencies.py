"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from household_ledger.services.container import LedgerServices


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_services(request: Request) -> LedgerServices:
    """Provide the ledger services built at application startup"""
    return request.app.state.services
