"""
Service error taxonomy and FastAPI exception handlers.

Expected authorization denials are plain ``False`` results inside the
pipeline. These exceptions exist for the HTTP boundary only.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()

NOT_AUTHORIZED_MESSAGE = "User is not authorized."


class ServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error."

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation errors."


class AuthenticationFailed(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Provided JWT token is invalid."


class AuthorizationDenied(ServiceError):
    """Always carries the same message, whatever check failed."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = NOT_AUTHORIZED_MESSAGE

    def __init__(self, details: Any = None):
        super().__init__(NOT_AUTHORIZED_MESSAGE, details)


class Forbidden(ServiceError):
    """403 for account states (e.g. suspension), not policy denials."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden."


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict."


class ExpectationFailed(ServiceError):
    status_code = status.HTTP_417_EXPECTATION_FAILED
    default_message = "Expectation failed."


class RateLimited(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests"


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error."


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Attach the service error handlers to an application."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "loc": list(err.get("loc", ())),
                "msg": err.get("msg"),
                "type": err.get("type"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"errors": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error",
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "message": str(exc) if debug else InternalError.default_message,
            },
        )
