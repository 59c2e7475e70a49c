"""
API Exceptions and Error Handlers.
"""
import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storycast.providers.exceptions import BillingError, GenerationSchemaError, ProviderError
from storycast.services.agents.exceptions import EpisodeError

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str
    detail: Optional[str] = None
    code: str
    status_code: int
    retryable: bool = False


class APIError(Exception):
    """Base API exception."""

    def __init__(
        self,
        message: str,
        code: str = "API_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Optional[str] = None,
        retryable: bool = False,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        self.retryable = retryable
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            detail=self.detail,
            code=self.code,
            status_code=self.status_code,
            retryable=self.retryable,
        )


class NotFoundError(APIError):
    """404 - Resource Not Found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            code="NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ServiceUnavailableError(APIError):
    """503 - Service Unavailable."""

    def __init__(self, service: str = "Generation service", detail: Optional[str] = None):
        super().__init__(
            message=f"{service} is temporarily unavailable",
            code="SERVICE_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            retryable=True,
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


async def episode_error_handler(request: Request, exc: EpisodeError) -> JSONResponse:
    """Handle episode workflow errors (status and retryable come from the error class)."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    response = ErrorResponse(
        error=exc.message,
        code=exc.code,
        status_code=exc.status_code,
        retryable=exc.retryable,
    )
    return JSONResponse(status_code=exc.status_code, content=response.model_dump())


async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    """Handle generation/audio provider failures."""
    if isinstance(exc, GenerationSchemaError):
        response = ErrorResponse(
            error="Generated content failed validation",
            detail=exc.message,
            code="SCHEMA_VALIDATION_FAILED",
            status_code=status.HTTP_502_BAD_GATEWAY,
            retryable=True,
        )
    elif isinstance(exc, BillingError):
        response = ErrorResponse(
            error="Provider billing limit reached",
            detail=exc.message,
            code="PROVIDER_BILLING",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            retryable=False,
        )
    else:
        response = ErrorResponse(
            error=f"{exc.provider} provider failed",
            detail=exc.message,
            code="PROVIDER_ERROR",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            retryable=True,
        )

    logger.error(f"{request.method} {request.url.path} failed: {response.code} {exc}")
    return JSONResponse(status_code=response.status_code, content=response.model_dump())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": str(exc) if request.app.debug else None,
            "code": "INTERNAL_ERROR",
            "status_code": 500,
            "retryable": False,
        },
    )
