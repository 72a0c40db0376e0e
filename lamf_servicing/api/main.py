"""FastAPI application factory"""

import uvicorn
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from lamf_servicing.api.middleware import RequestIDMiddleware, MetricsMiddleware
from lamf_servicing.api.v1 import admin, collaterals, jobs, loans, margin_calls
from lamf_servicing.infrastructure.database.session import SessionLocal
from lamf_servicing.infrastructure.observability.logging import setup_logging
from lamf_servicing.config import ServicingConfig, settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="LAMF Servicing",
        description="Loan servicing and collateral risk engine for loans against mutual funds",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.servicing_config = ServicingConfig.from_settings(settings)
    app.state.session_factory = SessionLocal

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
    app.include_router(loans.router, prefix="/v1", tags=["loans"])
    app.include_router(collaterals.router, prefix="/v1", tags=["collaterals"])
    app.include_router(margin_calls.router, prefix="/v1", tags=["margin-calls"])
    app.include_router(jobs.router, prefix="/v1", tags=["jobs"])
    app.include_router(admin.router, prefix="/v1", tags=["admin"])

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``lamf-servicing`` console script)"""
    uvicorn.run(
        "lamf_servicing.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
