"""
Odoo ⇄ PrestaShop Sync — Webhook Application

FastAPI application entry point. Cron runs live in services/cron_service.py.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import structlog
from datetime import datetime, timezone

from config import settings, configure_logging

configure_logging(settings)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Report which upstreams are configured
    Shutdown: Log
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        dry_run=settings.dry_run,
        odoo_configured=settings.odoo_configured,
        presta_configured=bool(settings.presta_url and settings.presta_key)
    )

    if not settings.webhook_token:
        logger.warning("webhook_token_not_set", effect="all webhook calls will be rejected")

    yield

    logger.info("application_shutting_down")


# Create FastAPI app
app = FastAPI(
    title="Odoo PrestaShop Sync",
    description="Stock and product synchronization between Odoo and PrestaShop",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Basic status and which upstreams are configured
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "dry_run": settings.dry_run,
        "odoo_configured": settings.odoo_configured,
        "presta_configured": bool(settings.presta_url and settings.presta_key),
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": str(exc) if settings.debug else "An unexpected error occurred",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.webhook import router as webhook_router

app.include_router(webhook_router, prefix="/webhook", tags=["Webhook"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
