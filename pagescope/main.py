import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from pagescope.api.health import router as health_router
from pagescope.api.router import api_router
from pagescope.config import settings
from pagescope.core.exceptions import register_exception_handlers
from pagescope.core.logging_config import configure_logging
from pagescope.middleware.request_id import RequestIDMiddleware
from pagescope.services.browser import PlaywrightDriver
from pagescope.services.jobs import JobLedger

# Configure structured logging (must happen before any logger is created)
configure_logging(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

# Initialize Sentry error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"pagescope@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Browsers are launched per scrape; only the driver config lives here
    app.state.job_ledger = JobLedger()
    app.state.browser_driver = PlaywrightDriver()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} on port {settings.PORT}")

    yield

    logger.info(f"Shutting down ({len(app.state.job_ledger)} jobs in ledger)")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="PageScope - single-page browser scraping. "
    "Loads a page in a stealth browser, clears bot challenges and popups, "
    "and returns metadata, readable content, Markdown and structured extracts.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)

# Request ID middleware (must be added before other middleware)
app.add_middleware(RequestIDMiddleware)

app.add_middleware(GZipMiddleware, minimum_size=500)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

# Health & metrics routes (no /api prefix)
app.include_router(health_router)


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "status": "running",
    }
