"""
Centralized error handling utilities for consistent error responses
"""

from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from utils.structured_logging import get_logger, LogCategory

logger = get_logger("errors")


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required", details: Optional[Any] = None):
        super().__init__(message, details)


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied", details: Optional[Any] = None):
        super().__init__(message, details)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, details)


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class ExternalServiceError(ServiceError):
    """The audio analysis microservice failed or was unreachable"""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "EXTERNAL_SERVICE_ERROR"


def validate_resource_exists(resource: Any, resource_name: str, resource_id: Any) -> Any:
    """
    Validate that a resource exists, raise NotFoundError if not

    Args:
        resource: The resource object (None if not found)
        resource_name: Name of the resource for error message
        resource_id: ID of the resource that was searched for
    """
    if resource is None:
        logger.warning(f"{resource_name} not found: {resource_id}", extra={"resource": resource_name})
        raise NotFoundError(f"{resource_name} not found")
    return resource


def error_body(message: str, code: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body = {"success": False, "error": message, "code": code}
    if details is not None:
        body["details"] = details
    return body


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(exc.message, exception=exc, request_path=request.url.path)
    elif exc.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
        logger.security(
            exc.message,
            event_type=exc.code.lower(),
            severity="low",
            request_path=request.url.path,
            user_id=getattr(request.state, "user_id", None),
        )
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.code, exc.details))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request payload validation failures map to 400 with field details"""
    details = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", []) if loc != "body"),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "validation_error"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", "VALIDATION_ERROR", details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(
        f"Database integrity error: {exc.orig}", category=LogCategory.DATABASE, request_path=request.url.path
    )
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body("Data integrity constraint violated", "CONFLICT"),
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database operation failed", category=LogCategory.DATABASE, exception=exc,
                 request_path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Database operation failed", "DATABASE_ERROR"),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error: {exc}", exception=exc, request_path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", "INTERNAL_ERROR"),
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
