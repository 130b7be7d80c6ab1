import asyncio
import logging

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .config import settings

logger = logging.getLogger(__name__)

# Infrastructure failures that are safe for the client to retry
TRANSIENT_ERRORS = (OperationalError, asyncio.TimeoutError, TimeoutError)


def _conditionally_set_cors_headers(request: Request, response: JSONResponse):
    """Reflect the request Origin only when it is in the configured allow list."""
    origin = request.headers.get("origin")
    if origin and origin in set(settings.CORS_ORIGINS):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Credentials"] = "true"


class BlogAppException(Exception):
    """Base class for errors the API reports to the client."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = None, status_code: int = None):
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationFailedException(BlogAppException):
    """Missing or malformed input"""
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCredentialsException(BlogAppException):
    """Unknown email or wrong password; the two are deliberately indistinguishable"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid credentials", code: str = None):
        super().__init__(message, code)


class UnauthorizedException(BlogAppException):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated", code: str = None):
        super().__init__(message, code)


class ForbiddenException(BlogAppException):
    """Authenticated, but not the owner of the resource"""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(BlogAppException):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(BlogAppException):
    """Duplicate unique key"""
    status_code = status.HTTP_400_BAD_REQUEST


class UploadFailedException(BlogAppException):
    """Image rejected before upload (400) or by the remote store (502)"""
    status_code = status.HTTP_400_BAD_REQUEST


class TransientException(BlogAppException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Service temporarily unavailable, please retry", code: str = None):
        super().__init__(message, code)


async def blog_app_exception_handler(request: Request, exc: BlogAppException):
    if exc.status_code >= 500:
        logger.error(f"Application error: {exc.__class__.__name__}: {exc.message}")
    else:
        logger.info(f"Application error: {exc.__class__.__name__}: {exc.message}")
    headers = None
    if isinstance(exc, UnauthorizedException):
        headers = {"WWW-Authenticate": "Bearer"}
    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "code": exc.code
        },
        headers=headers
    )
    _conditionally_set_cors_headers(request, response)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()}")
    details = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    response = JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "ValidationError",
            "message": "Request data is invalid",
            "details": details
        }
    )
    _conditionally_set_cors_headers(request, response)
    return response


async def transient_exception_handler(request: Request, exc: Exception):
    logger.error(f"Transient infrastructure error: {type(exc).__name__}: {exc}")
    return await blog_app_exception_handler(request, TransientException())


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTP error: {exc.status_code} - {exc.detail}")
    response = JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTPException",
            "message": exc.detail
        },
        headers=getattr(exc, "headers", None)
    )
    _conditionally_set_cors_headers(request, response)
    return response
