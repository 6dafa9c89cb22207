"""
Engine error types and the FastAPI handlers that translate them.

Line-level corruption and unmatched names are never raised; only structural
failures (unreadable upload, bad request arguments, missing rows) end up here.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class AttendanceEngineError(Exception):
    """Base class for errors the engine reports to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnreadableFileError(AttendanceEngineError):
    """Raised when an uploaded export cannot be read or decoded at all."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidDateRangeError(AttendanceEngineError):
    pass


class RecordNotFoundError(AttendanceEngineError):
    status_code = status.HTTP_404_NOT_FOUND


async def _engine_error_handler(_request: Request, exc: AttendanceEngineError) -> JSONResponse:
    logger.warning("%s: %s", type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Database constraint violation"},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal database error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach engine and database error handlers to the app."""
    app.add_exception_handler(AttendanceEngineError, _engine_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
