"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from attendance_payroll.api.routes import health_router, jornadas_router, liquidations_router
from attendance_payroll.config import get_settings
from attendance_payroll.database import dispose_db, init_db
from attendance_payroll.errors import (
    JornadaInvariantError,
    LiquidationCancelledError,
    PeriodClosedError,
    StoreUnavailableError,
)
from attendance_payroll.logging_config import configure_logging
from attendance_payroll.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Attendance Payroll Engine API",
        description="Attendance reconciliation and payroll liquidation",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(JornadaInvariantError)
    async def invariant_handler(request: Request, exc: JornadaInvariantError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INVALID_JORNADA")

    @app.exception_handler(PeriodClosedError)
    async def period_closed_handler(request: Request, exc: PeriodClosedError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "PERIOD_CLOSED")

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "INVALID_TRANSITION")

    @app.exception_handler(LiquidationCancelledError)
    async def cancelled_handler(request: Request, exc: LiquidationCancelledError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "CANCELLED")

    @app.exception_handler(StoreUnavailableError)
    async def store_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("Store unavailable: %s", exc)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), "STORE_UNAVAILABLE")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )

    app.include_router(health_router)
    app.include_router(jornadas_router, prefix="/api/v1")
    app.include_router(liquidations_router, prefix="/api/v1")

    return app
