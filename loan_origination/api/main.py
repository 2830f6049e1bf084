"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_origination.api.errors import register_exception_handlers
from loan_origination.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loan_origination.api.v1 import applications, simulator
from loan_origination.infrastructure.observability.logging import setup_logging
from loan_origination.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loan Origination",
        description="Loan simulation and application lifecycle service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(simulator.router, prefix="/v1", tags=["simulations"])
    app.include_router(applications.router, prefix="/v1", tags=["applications"])

    return app


app = create_app()
