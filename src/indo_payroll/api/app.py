"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from indo_payroll import __version__
from indo_payroll.api.routes import (
    bulk_operations_router,
    health_router,
    periods_router,
    salary_router,
)
from indo_payroll.errors import (
    ComplianceViolation,
    ConcurrencyConflict,
    ExternalDependencyError,
    InvalidStateTransition,
    LedgerImmutableError,
    NotFoundError,
    PartialFailure,
    PayrollError,
    ValidationError,
)
from indo_payroll.services.container import ServiceContainer

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[PayrollError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateTransition: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
    ComplianceViolation: status.HTTP_422_UNPROCESSABLE_CONTENT,
    PartialFailure: status.HTTP_409_CONFLICT,
    ExternalDependencyError: status.HTTP_503_SERVICE_UNAVAILABLE,
    LedgerImmutableError: status.HTTP_409_CONFLICT,
}


def _error_context(exc: PayrollError) -> dict | None:
    if isinstance(exc, ComplianceViolation):
        return {"warnings": [w.to_dict() for w in exc.warnings]}
    if isinstance(exc, InvalidStateTransition):
        return {"from_status": exc.from_status, "to_status": exc.to_status}
    if isinstance(exc, ExternalDependencyError):
        return {"retryable": exc.retryable}
    return None


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    When no container is given, one is built from settings at startup and
    closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if container is not None:
            yield
            return
        app.state.container = ServiceContainer.from_settings()
        await app.state.container.init_models()
        try:
            yield
        finally:
            await app.state.container.close()

    app = FastAPI(
        title="Indonesian Payroll Engine API",
        description="PPh 21, BPJS, payroll periods and salary ledger",
        version=__version__,
        lifespan=lifespan,
    )

    if container is not None:
        app.state.container = container

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_exception_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map engine errors onto HTTP status codes."""
        status_code = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
            status.HTTP_400_BAD_REQUEST,
        )
        content = {"detail": str(exc), "code": exc.code}
        context = _error_context(exc)
        if context is not None:
            content["context"] = context
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(periods_router, prefix="/api/v1")
    app.include_router(bulk_operations_router, prefix="/api/v1")
    app.include_router(salary_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
