"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from mipago_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from mipago_gateway.api.v1 import accounts, credits, kyc, transfers
from mipago_gateway.infrastructure.observability.logging import setup_logging
from mipago_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Mi Pago Gateway",
        description="Wallet credits, transfers, account security and KYC",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

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
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(credits.router, prefix="/v1", tags=["credits"])
    app.include_router(transfers.router, prefix="/v1", tags=["transfers"])
    app.include_router(kyc.router, prefix="/v1", tags=["kyc"])

    return app


app = create_app()
