"""
Custom exceptions and error handlers.
"""
import logging
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from onboarding.config import get_settings
from onboarding.utils.logging import get_request_id

logger = logging.getLogger(__name__)


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            status_code=404,
            code="NOT_FOUND",
            message=f"{resource} not found: {resource_id}",
        )


class ValidationException(AppException):
    """Validation error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            status_code=400,
            code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class AuthenticationError(AppException):
    """Caller has no valid session."""

    def __init__(self, message: str = "Unauthorized", code: str = "AUTH_ERROR"):
        super().__init__(
            status_code=401,
            code=code,
            message=message,
        )


class AuthorizationError(AppException):
    """Caller is authenticated but their role is not permitted."""

    def __init__(self, message: str, code: str = "FORBIDDEN", details: Optional[dict] = None):
        super().__init__(
            status_code=403,
            code=code,
            message=message,
            details=details,
        )


class PdfPipelineException(AppException):
    """PDF decode/render/merge failure surfaced to the client."""

    def __init__(self, message: str, stage: Optional[str] = None):
        # Internal failure reasons stay out of production responses
        if get_settings().is_production:
            message = "Failed to generate PDF"
            details = None
        else:
            details = {"stage": stage} if stage else None
        super().__init__(
            status_code=500,
            code="PDF_PIPELINE_ERROR",
            message=message,
            details=details,
        )


def build_error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> dict:
    """Build standardized error response."""
    response = {
        "error": True,
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        response["details"] = details
    return response


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """Handle application exceptions."""
    if exc.status_code >= 500:
        logger.error(f"AppException: {exc.code} - {exc.message}")
    else:
        logger.warning(f"AppException: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(
            exc.status_code,
            exc.code,
            exc.message,
            exc.details,
        ),
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(f"HTTPException: {exc.status_code} - {exc.detail}")

    if isinstance(exc.detail, dict):
        code = exc.detail.get("code", "HTTP_ERROR")
        message = exc.detail.get("message", str(exc.detail))
    else:
        code = "HTTP_ERROR"
        message = str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(exc.status_code, code, message),
    )


async def validation_exception_handler(
    request: Request,
    exc: ValidationError,
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(f"ValidationError: {exc.errors()}")

    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=400,
        content=build_error_response(
            400,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        ),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    message = "An unexpected error occurred"
    if not get_settings().is_production:
        message = f"{message}: {exc}"

    return JSONResponse(
        status_code=500,
        content=build_error_response(
            500,
            "INTERNAL_ERROR",
            message,
        ),
    )
