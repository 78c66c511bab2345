"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from northstar.domain.exceptions import (
    AllProvidersFailedError,
    DomainError,
    NoProviderConfiguredError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

AI_UNAVAILABLE_BODY = {
    "code": "AI_UNAVAILABLE",
    "message": "AI assistance is temporarily unavailable. Please try again soon.",
}


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    # Provider details stay in the logs; the client only learns "unavailable".
    @app.exception_handler(NoProviderConfiguredError)
    async def handle_unconfigured(
        request: Request, exc: NoProviderConfiguredError
    ) -> ORJSONResponse:
        logger.error("ai_unavailable_http", code=exc.code, routing_reason=exc.reason)
        return ORJSONResponse(status_code=503, content=AI_UNAVAILABLE_BODY)

    @app.exception_handler(AllProvidersFailedError)
    async def handle_exhausted(request: Request, exc: AllProvidersFailedError) -> ORJSONResponse:
        logger.error(
            "ai_unavailable_http",
            code=exc.code,
            attempts=[a.to_dict() for a in exc.attempts],
        )
        return ORJSONResponse(status_code=503, content=AI_UNAVAILABLE_BODY)

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error_type=type(exc).__name__)
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
