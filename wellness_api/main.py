"""
Wellness API - Main Application
===============================

FastAPI application entry point with middleware configuration
and route registration.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import newrelic.agent

# Configure logging for the application (root logger defaults to WARNING)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError

from wellness_api.config import settings
from wellness_api.core.errors import setup_exception_handlers
from wellness_api.core.rate_limit import build_rate_limiter
from wellness_api.db.session import init_db, close_db
from wellness_api.services.cache import init_redis, close_redis

logger = logging.getLogger(__name__)


# =============================================================================
# New Relic Transaction Enrichment Middleware (Raw ASGI)
# =============================================================================

class NewRelicTransactionMiddleware:
    """
    Raw ASGI middleware that enriches every New Relic transaction with
    custom attributes for filtering and alerting on webhook traffic.

    Raw ASGI keeps the handler in the same task, so New Relic's
    contextvars-based span propagation still sees the DB calls.

    Captures: response status, latency, HTTP method, route pattern and the
    forwarded client address used by the rate limiter.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500  # default until we capture the real one

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000

            txn = newrelic.agent.current_transaction()
            if txn:
                route = scope.get("route")
                route_path = route.path if route else scope.get("path", "unknown")

                headers = dict(scope.get("headers") or [])
                forwarded = headers.get(b"x-forwarded-for", b"").decode("latin-1")
                client_ip = forwarded.split(",")[0].strip() or "unknown"

                newrelic.agent.add_custom_attributes([
                    ("http.method", scope.get("method", "")),
                    ("http.route", route_path),
                    ("http.status_code", status_code),
                    ("http.duration_ms", round(duration_ms, 2)),
                    ("http.client_ip", client_ip),
                    ("environment", settings.ENVIRONMENT),
                ])


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown of:
    - Database connection
    - Redis connection (only with RATE_LIMIT_BACKEND=redis)
    """
    logger.info("Starting Wellness API...")

    if not settings.HOTMART_WEBHOOK_SECRET:
        logger.warning(
            "HOTMART_WEBHOOK_SECRET is not set; the webhook will answer 500"
        )

    # Continue startup even if DB fails (for health checks)
    try:
        await init_db()
    except (SQLAlchemyError, OSError, ValueError) as e:
        logger.warning("Database connection failed: %s", e)

    if settings.RATE_LIMIT_BACKEND == "redis":
        try:
            await init_redis()
        except (RedisError, OSError) as e:
            logger.warning("Redis connection failed: %s", e)

    yield

    logger.info("Shutting down Wellness API...")
    await close_db()
    await close_redis()


# Create FastAPI application
app = FastAPI(
    title="Wellness API",
    description="""
## Diet & Wellness Application Backend

Server-side hooks for the wellness app. Authentication, profiles and the
recipe catalog are served by the hosted backend directly.

### Features
- **Hotmart webhook**: activates and deactivates premium subscriptions from
  purchase lifecycle notifications

### Rate Limits
- Webhook: 30 requests/minute per client address (per process)
    """,
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

# Owned by this application instance; see wellness_api.core.rate_limit
app.state.rate_limiter = build_rate_limiter(settings)

# Configure CORS (the webhook answers every origin with "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
)

# New Relic transaction enrichment (adds custom attrs to every transaction)
app.add_middleware(NewRelicTransactionMiddleware)

# Setup exception handlers
setup_exception_handlers(app)


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns the current status of the API.
    """
    return {
        "status": "healthy",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/", tags=["Health"])
async def root() -> dict:
    """Root endpoint with API information."""
    return {
        "name": "Wellness API",
        "version": "1.0.0",
        "docs": "/docs" if settings.is_development else "Disabled in production",
    }


# =============================================================================
# API Routes
# =============================================================================

from wellness_api.api.v1 import webhooks
app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
