"""
Domain error taxonomy and global exception handlers.

Core services raise the ``ShuttleError`` subclasses below at the point of
detection; the handlers registered here map them to HTTP responses and keep
stack traces away from clients.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class ShuttleError(Exception):
    """Base class for errors raised by the workflow core."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"detail": self.message, "success": False}


class ValidationFailed(ShuttleError):
    status_code = 400


class NotFoundError(ShuttleError):
    status_code = 404


class ForbiddenError(ShuttleError):
    status_code = 403


class ConflictError(ShuttleError):
    status_code = 409


class RateLimited(ShuttleError):
    status_code = 429


class DependencyFailure(ShuttleError):
    status_code = 500


class InvalidStateError(ShuttleError):
    """A transition was attempted from a status outside its allowed set."""

    status_code = 400

    def __init__(self, action: str, current: object, allowed: Iterable[object]) -> None:
        self.current = str(getattr(current, "value", current))
        self.allowed = sorted(str(getattr(s, "value", s)) for s in allowed)
        super().__init__(
            f"Cannot {action} a request in status {self.current}; "
            f"allowed from: {', '.join(self.allowed)}"
        )

    def payload(self) -> dict:
        return {
            "detail": self.message,
            "success": False,
            "status": self.current,
            "allowed": self.allowed,
        }


class CapacityViolation(ShuttleError):
    """Assigned seats for a route group are fewer than its headcount."""

    status_code = 400

    def __init__(
        self,
        required: int,
        available: int,
        route_id: int | None = None,
        sub_route_id: int | None = None,
    ) -> None:
        self.required = required
        self.available = available
        self.route_id = route_id
        self.sub_route_id = sub_route_id
        super().__init__(
            f"Insufficient capacity for route {route_id} / sub-route {sub_route_id} "
            f"(required {required}, available {available}). "
            "Overbook (+1/+2) needs HR approval."
        )

    def payload(self) -> dict:
        return {
            "detail": self.message,
            "success": False,
            "required": self.required,
            "available": self.available,
            "route_id": self.route_id,
            "sub_route_id": self.sub_route_id,
        }


# ── Handlers ────────────────────────────────────────────────────────
async def _shuttle_error_handler(_request: Request, exc: ShuttleError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Dependency failure: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(ShuttleError, _shuttle_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
