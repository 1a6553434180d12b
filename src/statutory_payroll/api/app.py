"""FastAPI application factory."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from statutory_payroll import __version__
from statutory_payroll.api.routes import health_router, payroll_router
from statutory_payroll.calculators.errors import (
    InvalidInput,
    InvalidRateTable,
    PayrollCalculationError,
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Statutory Payroll API",
        description="Statutory payroll deduction preview service",
        version=__version__,
    )

    # Exception handlers
    @app.exception_handler(PayrollCalculationError)
    async def calculation_exception_handler(
        request: Request, exc: PayrollCalculationError
    ) -> JSONResponse:
        """Report calculation errors with the offending field or rate type."""
        content: dict[str, str] = {"detail": str(exc), "code": exc.code}
        if isinstance(exc, InvalidInput):
            content["field"] = exc.field
        elif isinstance(exc, InvalidRateTable):
            content["rate_type"] = exc.rate_type
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=content,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
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
    app.include_router(payroll_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
