"""
FastAPI application initialization and configuration.
"""

from contextlib import asynccontextmanager, suppress
import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from database.engine import init_db, close_db
from api.maintenance import run_view_purge_loop
from api.routes import health
from api.routes.v1 import companies, jobs, users

# Import middleware components
from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()
    purge_task = None
    if settings.job_view_purge_interval_seconds > 0:
        purge_task = asyncio.create_task(
            run_view_purge_loop(settings.job_view_purge_interval_seconds)
        )

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    if purge_task is not None:
        purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await purge_task
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Job board API: accounts, job postings, search and applications",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Setup error handlers (before middleware)
setup_error_handlers(app)

# Add middleware (order matters - they execute in reverse order)
# 1. Error handling middleware (innermost, masks anything the handlers missed)
app.add_middleware(
    ErrorHandlingMiddleware,
    debug=settings.debug,
)

# 2. Structured logging middleware (logs all requests/responses)
app.add_middleware(
    StructuredLoggingMiddleware,
    log_request_body=settings.log_request_body,
)

# 3. CORS middleware; credentials are allowed so the refresh cookie travels
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check routes
app.include_router(health.router, tags=["Health"])

# API routes
app.include_router(users.router, prefix=settings.api_prefix, tags=["Users"])
app.include_router(jobs.router, prefix=settings.api_prefix, tags=["Jobs"])
app.include_router(companies.router, prefix=settings.api_prefix, tags=["Companies"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
