"""
Fitness Dashboard Sync API

FastAPI application mirroring Strava data for the dashboard.
"""

from contextlib import asynccontextmanager
import logging
import sys

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fitsync.config import settings
from fitsync.db.session import init_db
from fitsync.api.v1.router import api_router
from fitsync.features.strava import (
    RequestQueue,
    ResponseCache,
    StravaAuthError,
    StravaError,
    StravaRateLimitError,
    apply_pending_cookies,
)


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


# === Services ===
def init_services(app: FastAPI) -> None:
    """Create the process-wide Strava services."""
    app.state.http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    app.state.request_queue = RequestQueue(
        max_requests_per_window=settings.strava_max_requests_per_window,
        window_seconds=settings.strava_window_seconds,
        min_delay=settings.strava_min_request_delay_seconds,
        max_retries=settings.strava_max_retries,
        base_backoff=settings.strava_base_backoff_seconds,
    )
    app.state.response_cache = ResponseCache(default_ttl=settings.cache_default_ttl_seconds)


async def shutdown_services(app: FastAPI) -> None:
    await app.state.request_queue.close()
    await app.state.http_client.aclose()


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Fitness Dashboard Sync API...")
    await init_db()
    logger.info("Database initialized")

    init_services(app)
    if not (settings.strava_client_id and settings.strava_client_secret):
        logger.warning("Strava credentials not set; token refresh will fail")

    yield

    await shutdown_services(app)
    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="Fitness Dashboard Sync API",
    description="Rate-limit-aware Strava mirror for the fitness dashboard",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Error Handlers ===
@app.exception_handler(StravaRateLimitError)
async def rate_limit_handler(request: Request, exc: StravaRateLimitError):
    logger.warning(
        f"Strava rate limit surfaced to client: usage={exc.usage} "
        f"limit={exc.limit} retry_after={exc.retry_after}"
    )
    return apply_pending_cookies(
        request, JSONResponse(status_code=429, content=exc.to_dict())
    )


@app.exception_handler(StravaAuthError)
async def auth_error_handler(request: Request, exc: StravaAuthError):
    return apply_pending_cookies(
        request, JSONResponse(status_code=401, content={"error": exc.message})
    )


@app.exception_handler(StravaError)
async def strava_error_handler(request: Request, exc: StravaError):
    logger.error(f"Strava error on {request.url.path}: {exc}")
    return apply_pending_cookies(
        request,
        JSONResponse(status_code=exc.status or 502, content={"error": exc.message}),
    )


# === Routes ===
app.include_router(api_router, prefix="/api/v1")


# === Health Check ===
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}
