"""
Error taxonomy for the API.

Handlers raise these; the responders registered in main.py turn them into
``{"status": ..., "message": ...}`` JSON bodies.
"""

import logging
from typing import Any, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger('uvicorn.error')


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[list[dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or []

    @property
    def status(self) -> str:
        return "fail" if self.status_code < 500 else "error"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": self.status, "message": self.message}
        if self.details:
            body["errors"] = self.details
        return body


class ValidationError(AppError):
    """Malformed input."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Bad or missing credentials."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(AppError):
    """Authenticated, but the role is not permitted."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class TokenError(AppError):
    """Invalid or expired one-time token."""
    status_code = status.HTTP_400_BAD_REQUEST


class ServerError(AppError):
    """A downstream dependency (mail transport, database) failed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = details[0]["message"] if details else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"status": "fail", "message": message, "errors": details},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "error", "message": "Something went wrong!"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = {"status": "fail" if exc.status_code < 500 else "error", "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))
