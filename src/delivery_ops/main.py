"""
Main FastAPI application entry point for the delivery operations engine.

This module creates and configures the FastAPI application with all routes,
middleware, exception handlers, and startup/shutdown events.
"""

import logging
import os
import traceback
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from . import __version__
from .api.models import ErrorResponse, HealthCheckResponse
from .api.routers import router as api_router
from .db.engine import check_engine_health, dispose_engine, get_engine
from .db.init import init_db
from .shared.dependencies import (
    get_config,
    get_delivery_service,
    initialize_services,
    shutdown_services,
)
from .shared.exceptions import (
    InvalidTransition,
    NotFound,
    ResetError,
    StoreError,
    SubscriptionError,
)
from .shared.logging_config import configure_structured_logging

logger = logging.getLogger(__name__)

# Application metadata
APP_NAME = "Delivery Operations API"
APP_VERSION = __version__
APP_DESCRIPTION = """
**Delivery Operations API** backs the subscription delivery dashboard.

## Features

### Role views
Recent deliveries for admins, agents and customers, plus an agent's list for today.

### Live aggregates
Dashboard totals are cached and invalidated as soon as deliveries or
subscriptions change.

### Agent actions
Mark a scheduled delivery as delivered or missed. A delivery is resolved once;
a second resolution is rejected with 409.

### Simulation
Start a background simulator that resolves and creates deliveries every few
seconds, and clear or seed demo data.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown events."""
    config = await get_config()
    configure_structured_logging(level=config.log_level)

    logger.info(f"Starting {APP_NAME} v{APP_VERSION}")

    engine = await init_db(db_path=config.database.path, echo=config.database.echo)
    logger.info(f"Delivery database ready at {config.database.path}")

    initialize_services(config, engine)
    logger.info("Application startup completed")

    yield

    logger.info("Starting application shutdown")
    await shutdown_services()
    await dispose_engine()
    logger.info("Application shutdown completed")


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    version=APP_VERSION,
    description=APP_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Allow CORS origins to be configured via env var ALLOWED_ORIGINS (comma-separated)
allowed_origins_env = os.getenv("ALLOWED_ORIGINS")
allowed_origins = (
    [o.strip() for o in allowed_origins_env.split(",") if o.strip()]
    if allowed_origins_env
    else [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# ================================
# EXCEPTION HANDLERS
# ================================


def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    error_response = ErrorResponse(
        error=error,
        message=message,
        details=details,
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=status_code, content=error_response.model_dump(mode="json")
    )


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    """Resolving an already resolved delivery is a conflict."""
    return _error_response(
        status.HTTP_409_CONFLICT,
        "INVALID_TRANSITION",
        str(exc),
        details={
            "delivery_id": exc.delivery_id,
            "current_status": exc.current_status,
            "target_status": exc.target_status,
        },
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return _error_response(
        status.HTTP_404_NOT_FOUND,
        "NOT_FOUND",
        str(exc),
        details={"table": exc.table, "id": exc.record_id},
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Store failures are logged in full and reported generically."""
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "STORE_ERROR",
        "Failed to update delivery data, please retry",
        details={"operation": exc.operation, "table": exc.table},
    )


@app.exception_handler(ResetError)
async def reset_error_handler(request: Request, exc: ResetError):
    logger.error(f"Reset failed: {exc}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "RESET_FAILED",
        f"Failed to clear data at stage '{exc.stage}'",
        details={"stage": exc.stage, "completed_stages": exc.completed_stages},
    )


@app.exception_handler(SubscriptionError)
async def subscription_error_handler(request: Request, exc: SubscriptionError):
    return _error_response(status.HTTP_409_CONFLICT, "SUBSCRIPTION_ERROR", str(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return _error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with detailed field information."""
    logger.error(f"Validation error for {request.method} {request.url}: {exc.errors()}")

    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        details={"field_errors": field_errors},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    logger.error(traceback.format_exc())
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        details={"exception_type": type(exc).__name__},
    )


# ================================
# MIDDLEWARE
# ================================


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Log all requests and responses."""
    start_time = datetime.now(UTC)
    client = request.client.host if request.client else "unknown"

    logger.info(f"{request.method} {request.url} - Client: {client}")

    response = await call_next(request)

    duration = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(
        f"{request.method} {request.url} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration:.3f}s"
    )

    return response


# ================================
# CORE ROUTES
# ================================


@app.get(
    "/api",
    summary="Root endpoint",
    description="Welcome message and basic API information",
)
async def root():
    return {
        "message": f"Welcome to {APP_NAME}",
        "version": APP_VERSION,
        "docs_url": "/docs",
        "health_url": "/health",
        "timestamp": datetime.now(UTC),
    }


@app.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Health of the database, change tracking and simulation",
)
async def health_check():
    checks = {}
    overall_status = "healthy"

    if await check_engine_health(get_engine()):
        checks["database"] = {"status": "healthy"}
    else:
        checks["database"] = {"status": "unhealthy"}
        overall_status = "unhealthy"

    try:
        service = await get_delivery_service()
        checks["change_feed"] = {
            "status": "healthy",
            "subscriptions": service.store.change_feed.subscription_count,
        }
        checks["simulation"] = {
            "status": "healthy",
            "active": service.is_simulation_active(),
        }
        checks["aggregate_cache"] = {"status": "healthy", **service.cache.stats()}
    except HTTPException as e:
        checks["services"] = {"status": "unhealthy", "error": str(e.detail)}
        overall_status = "degraded" if overall_status == "healthy" else overall_status

    return HealthCheckResponse(
        status=overall_status,
        timestamp=datetime.now(UTC),
        version=APP_VERSION,
        checks=checks,
    )


@app.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Prometheus metrics for transitions, simulation ticks, "
    "change events and aggregate cache activity",
    tags=["Monitoring"],
)
async def prometheus_metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(api_router, prefix="/api")


def run_dev_server(host: str = "127.0.0.1", port: int = 8000, reload: bool = False):
    """Run the development server with uvicorn."""
    import uvicorn

    uvicorn.run("delivery_ops.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run_dev_server()
