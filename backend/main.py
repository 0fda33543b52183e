"""
FastAPI application entry point for the WealthIQ identity and CRM sync API.

Clerk lifecycle webhooks maintain the local users table; new users are
reconciled with HubSpot contacts in the background.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from wealthiq.api.routes import hubspot_sync
from wealthiq.api.routes import webhooks_clerk
from wealthiq.config.settings import get_settings
from wealthiq.database.session import reset_engine
from wealthiq.workers.hubspot_sync_scheduler import shutdown_sync_scheduler

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting WealthIQ API")

    settings = get_settings()
    app.state.webhook_configured = settings.webhook_configured
    app.state.hubspot_configured = settings.hubspot_configured

    if not settings.webhook_configured:
        if settings.allow_unsigned_webhooks:
            logger.warning(
                "CLERK_WEBHOOK_SECRET not set; accepting UNSIGNED Clerk webhooks (development only)"
            )
        else:
            logger.warning(
                "CLERK_WEBHOOK_SECRET not set. The Clerk webhook endpoint will return 503."
            )

    if not settings.hubspot_configured:
        logger.warning(
            "HUBSPOT_API_KEY not set. New users will not be synced to HubSpot "
            "and sync endpoints will return 503."
        )

    if not os.getenv("DATABASE_URL"):
        logger.error("DATABASE_URL is not set. All database-backed endpoints will return 503.")

    yield

    # Shutdown
    logger.info("Shutting down WealthIQ API")
    shutdown_sync_scheduler(wait=True)
    reset_engine()


# Create FastAPI app
app = FastAPI(
    title="WealthIQ API",
    description="Identity ingestion from Clerk and contact synchronization with HubSpot",
    version="1.0.0",
    lifespan=lifespan
)

cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Clerk webhooks (Svix signature, no user authentication)
app.include_router(webhooks_clerk.router)

# HubSpot sync status, retries and backfill (requires authenticated caller)
app.include_router(hubspot_sync.router)


@app.get("/health", include_in_schema=False)
async def health(request: Request):
    return {
        "status": "ok",
        "webhook_configured": getattr(request.app.state, "webhook_configured", False),
        "hubspot_configured": getattr(request.app.state, "hubspot_configured", False),
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions with proper logging."""
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
