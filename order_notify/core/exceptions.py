"""
Application error types and the JSON error envelope returned by the API.
Every AppError maps to ``{"error": {code, message, details, path}}``.
"""

from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Root of the notification service errors; carries an HTTP status."""
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class EntityNotFoundException(AppError):
    """Lookup by id found nothing (notification, template, alert)."""
    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class BusinessRuleViolationException(AppError):
    """Request was well formed but refused (opted out, rate limited, non-compliant)."""
    def __init__(self, message: str = "Request refused", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class InvalidPhoneNumberError(BusinessRuleViolationException):
    """Phone number could not be validated as a WhatsApp-capable Brazilian mobile."""
    def __init__(self, reason: str):
        super().__init__(f"Invalid phone number: {reason}", {"reason": reason})


class PhoneEncryptionError(AppError):
    """Raised when phone encryption or decryption fails with a configured key."""


class TemplateRenderError(AppError):
    """Raised when a message body cannot be produced for a notification."""


class EvolutionAPIError(AppError):
    """Transport failure talking to the Evolution API.

    The message always embeds the HTTP status (when there is one) so the
    error classifier can recognise 429/5xx responses from text alone.
    """
    def __init__(self, message: str, http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, {"http_status": http_status})


def _error_response(request: Request, status_code: int, error: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {**error, "path": request.url.path}})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, AppError):
        return _error_response(request, exc.status_code, {
            "code": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        })

    logger.exception("Unhandled error", path=request.url.path)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, {
        "code": "InternalServerError",
        "message": "Unexpected error while handling the request.",
    })
