"""FastAPI application factory"""

from typing import Optional

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.responses import Response

from household_ledger.api.middleware import MetricsMiddleware, RequestIDMiddleware
from household_ledger.api.v1 import accounts, bills, cards, transactions
from household_ledger.config import settings
from household_ledger.infrastructure.database.session import get_session_factory
from household_ledger.infrastructure.observability.logging import setup_logging
from household_ledger.services.container import LedgerServices, build_services

# Setup structured logging
setup_logging(settings.log_level)


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    services: Optional[LedgerServices] = None,
) -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Household Ledger",
        description="Credit card billing cycles, bill payments and account balances",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services or build_services(session_factory or get_session_factory())

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(cards.router, prefix="/v1", tags=["cards"])
    app.include_router(bills.router, prefix="/v1", tags=["bills"])

    return app


app = create_app()
