"""
Error types for the Sweet Shop API and the handlers that turn them into
JSON responses of the shape {"message": ...}.
"""

import logging
import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class SweetShopError(Exception):
    """
    Base exception for all shop errors.

    Attributes:
        message: Human-readable message sent to the client
        details: Optional dict with extra context, only used in logs
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class ValidationError(SweetShopError):
    status_code = 400


class ConflictError(SweetShopError):
    """Raised when a unique field (email, username) is already taken."""

    status_code = 400


class AuthenticationError(SweetShopError):
    status_code = 401


class AuthorizationError(SweetShopError):
    status_code = 403


class NotFoundError(SweetShopError):
    status_code = 404


class InsufficientStockError(SweetShopError):
    """
    Raised when a purchase cannot be served.

    Covers both a missing sweet and too little stock, so callers can't probe
    the catalog through the purchase endpoint.
    """

    status_code = 400

    def __init__(self, sweet_id: str, requested: int):
        super().__init__(
            "Insufficient stock or sweet not found",
            details={"sweet_id": sweet_id, "requested": requested},
        )
        self.sweet_id = sweet_id
        self.requested = requested


# Messages for malformed bodies, keyed by (method, route path template).
VALIDATION_MESSAGES = {
    ("POST", "/auth/register"): "Invalid request data",
    ("POST", "/auth/login"): "Invalid request data",
    ("GET", "/sweets/search"): "Invalid search parameters",
    ("POST", "/sweets"): "Invalid sweet data",
    ("PUT", "/sweets/{sweet_id}"): "Invalid sweet data",
    ("POST", "/sweets/{sweet_id}/purchase"): "Invalid purchase data",
    ("POST", "/sweets/{sweet_id}/restock"): "Invalid restock data",
    ("POST", "/cart"): "Invalid cart data",
    ("PUT", "/cart/{item_id}"): "Invalid cart data",
}


def _validation_message(request: Request, prefix: str) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    if prefix and path.startswith(prefix):
        path = path[len(prefix):]
    return VALIDATION_MESSAGES.get((request.method, path), "Invalid request data")


def register_exception_handlers(app: FastAPI, prefix: str = "", include_stack: bool = False) -> None:
    @app.exception_handler(SweetShopError)
    async def shop_error_handler(request: Request, exc: SweetShopError):
        if exc.status_code >= 500:
            logger.error("%r on %s %s", exc, request.method, request.url.path)
        else:
            logger.debug("%r on %s %s", exc, request.method, request.url.path)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"message": _validation_message(request, prefix)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"message": "Internal Server Error"}
        if include_stack:
            content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=content)
