"""
Main FastAPI application for Rideway.
Tracks motorcycle maintenance and notifies configured integrations.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rideway import __version__
from rideway.config import settings
from rideway.routes import dashboard, health, integrations, maintenance, motorcycles
from rideway.services.database import close_db, init_db
from rideway.services.errors import NotFoundError, ValidationError
from rideway.utils.background_tasks import startup_background_tasks
from rideway.utils.notification_tracker import DueCheckRateLimiter, NotificationDebouncer

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks."""
    # Startup
    await init_db()

    app.state.debouncer = NotificationDebouncer(settings.NOTIFICATION_COOLDOWN_SECONDS)
    app.state.rate_limiter = DueCheckRateLimiter(settings.DUE_CHECK_MIN_INTERVAL_SECONDS)
    app.state.http_client = httpx.AsyncClient(timeout=settings.INTEGRATION_REQUEST_TIMEOUT)

    background = startup_background_tasks(
        [app.state.debouncer, app.state.rate_limiter],
        interval_seconds=settings.NOTIFICATION_PRUNE_INTERVAL_SECONDS,
        max_age_seconds=settings.NOTIFICATION_RETENTION_SECONDS,
    )
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")

    yield
    # Shutdown
    for task in background:
        task.cancel()
    await app.state.http_client.aclose()
    await close_db()


app = FastAPI(
    title="Rideway",
    description="Motorcycle maintenance tracker with outbound notifications",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


# Register routes
app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(motorcycles.router, prefix="/api/v1/motorcycles", tags=["motorcycles"])
app.include_router(maintenance.router, prefix="/api/v1/maintenance", tags=["maintenance"])
app.include_router(dashboard.router, prefix="/api/v1", tags=["dashboard"])
app.include_router(integrations.router, prefix="/api/v1/integrations", tags=["integrations"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": __version__,
        "status": "running",
    }
