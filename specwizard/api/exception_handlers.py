"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from specwizard.core.exceptions import (
    ErrorCategory,
    SpecWizardError,
    SpecificationVersionConflictError,
    ValidationError,
    classify_error,
)

log = structlog.get_logger(__name__)

STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.GENERATION_PROVIDER: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCategory.CONFIGURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: SpecWizardError) -> int:
    if isinstance(exc, SpecificationVersionConflictError):
        return status.HTTP_409_CONFLICT
    return STATUS_BY_CATEGORY.get(
        classify_error(exc), status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def error_body(error_type: str, message: str, errors=None) -> dict:
    body = {"type": error_type, "message": message}
    if errors:
        body["errors"] = list(errors)
    return {"error": body}


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Maps every SpecWizardError onto an HTTP status through its error
    category, plus a generic handler for anything unexpected.
    """

    @app.exception_handler(SpecWizardError)
    async def spec_wizard_error_handler(
        request: Request,
        exc: SpecWizardError,
    ) -> JSONResponse:
        """Handle SpecWizardError exceptions with a uniform error body.

        Validation errors include their itemised messages under "errors".
        Configuration errors hide their details from the client.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        status_code = status_for(exc)
        category = classify_error(exc)

        if category == ErrorCategory.CONFIGURATION:
            log_ctx.error("configuration_error", message=exc.message)
            return JSONResponse(
                status_code=status_code,
                content=error_body("ConfigurationError", "Server configuration error"),
            )

        log_ctx.warning(
            "request_error",
            message=exc.message,
            category=category.value,
            status_code=status_code,
        )
        errors = exc.errors if isinstance(exc, ValidationError) else None
        return JSONResponse(
            status_code=status_code,
            content=error_body(type(exc).__name__, exc.message, errors),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status."""
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("InternalServerError", "An unexpected error occurred"),
        )
