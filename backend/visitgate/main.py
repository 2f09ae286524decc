"""VisitGate — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from visitgate.api.v1.checkouts import router as checkouts_router
from visitgate.api.v1.invites import router as invites_router
from visitgate.api.v1.notifications import router as notifications_router
from visitgate.api.v1.visits import router as visits_router
from visitgate.clock import clock
from visitgate.config import settings
from visitgate.errors import PersistenceError, VisitGateError
from visitgate.services.scheduler import SweepScheduler

# Configure root logger so all visitgate.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    from visitgate.database import async_session_factory, engine

    scheduler = SweepScheduler(async_session_factory, clock, settings.sweep_interval_seconds)
    app.state.sweep_scheduler = scheduler
    if settings.sweep_enabled:
        scheduler.start()
    yield
    # Shutdown: stop sweeping before disposing the engine
    await scheduler.stop()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Campus visitor lifecycle: invites, gate check-in, checkout and overstay escalation.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VisitGateError)
async def visitgate_error_handler(request: Request, exc: VisitGateError) -> JSONResponse:
    """Turn typed domain errors into a structured body with a matching status."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Unhandled database error on %s %s: %s", request.method, request.url.path, exc)
    error = PersistenceError("Storage failure, please retry")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Routers
app.include_router(invites_router)
app.include_router(visits_router)
app.include_router(checkouts_router)
app.include_router(notifications_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
