"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from wellbeing_ai.domain.exceptions import (
    AllProvidersExhaustedError,
    DomainError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

EXHAUSTED_MESSAGE = "The assistant is temporarily unavailable. Please try again shortly."


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(AllProvidersExhaustedError)
    async def handle_exhausted(
        request: Request, exc: AllProvidersExhaustedError
    ) -> ORJSONResponse:
        # Vendor messages stay in the logs; clients only see kind codes.
        logger.error("providers_exhausted_http", **exc.to_dict())
        return ORJSONResponse(
            status_code=503,
            content={
                "code": exc.code,
                "message": EXHAUSTED_MESSAGE,
                "details": exc.to_dict(),
            },
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
