"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from payment_reconciler.api.middleware import MetricsMiddleware, RequestIDMiddleware
from payment_reconciler.api.v1 import payments, reconciliation
from payment_reconciler.config import settings
from payment_reconciler.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Payment Reconciler",
        description="Settles pending payment intents against bank transaction history",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(reconciliation.router, prefix="/v1", tags=["reconciliation"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])

    return app


app = create_app()
