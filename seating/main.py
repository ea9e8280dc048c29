"""
Venue seating - table allocation and availability API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from seating.config import settings
from seating.database import get_session_factory
from seating.allocation.errors import (
    AllocationError,
    ConcurrencyConflictError,
    DataIntegrityError,
    HoldExpiredError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from seating.allocation.walkin import WalkInFlowStore
from seating.api import availability, bookings, holds, priorities, tables, walkins
from seating.models.ledger import AllocationLedger


def configure_logging() -> None:
    """Route structlog through stdlib logging; JSON in production, console locally"""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting seating API", version="1.0.0")
    yield
    logger.info("Shutting down seating API", open_walk_ins=len(app.state.walk_in_flows))


# Create FastAPI application
app = FastAPI(
    title="Venue Seating",
    description="Table allocation, availability and walk-in seating",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.walk_in_flows = WalkInFlowStore()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Map engine errors to HTTP responses
ERROR_STATUS = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (ConcurrencyConflictError, 409),
    (DataIntegrityError, 409),
    (SlotUnavailableError, 409),
    (HoldExpiredError, 410),
)


@app.exception_handler(AllocationError)
async def allocation_error_handler(request: Request, exc: AllocationError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    logger.warning(
        "Request failed",
        path=request.url.path,
        error=type(exc).__name__,
        detail=exc.message,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# Health check endpoints
@app.get("/health")
async def health():
    """Liveness check"""
    return {"status": "healthy", "service": "seating", "version": "1.0.0"}


@app.get("/health/ready")
async def ready(
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Readiness: migrated schema and a reachable sweep broker"""
    checks = {}

    try:
        async with session_factory() as db:
            await db.execute(select(func.count()).select_from(AllocationLedger))
        checks["schema"] = "ok"
    except SQLAlchemyError as e:
        checks["schema"] = f"failed: {e.__class__.__name__}"

    try:
        from seating.jobs.celery_app import celery_app

        with celery_app.connection_for_write() as conn:
            conn.ensure_connection(max_retries=1)
        checks["broker"] = "ok"
    except Exception as e:
        checks["broker"] = f"failed: {e.__class__.__name__}"

    return {
        "status": "ready" if all(v == "ok" for v in checks.values()) else "not_ready",
        "checks": checks,
        "open_walk_ins": len(request.app.state.walk_in_flows),
    }


# Include API routers
app.include_router(tables.router, prefix="/tables", tags=["Tables"])
app.include_router(priorities.router, prefix="/priorities", tags=["Priorities"])
app.include_router(availability.router, prefix="/availability", tags=["Availability"])
app.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])
app.include_router(holds.router, prefix="/holds", tags=["Slot holds"])
app.include_router(walkins.router, prefix="/walk-ins", tags=["Walk-ins"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "seating.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
