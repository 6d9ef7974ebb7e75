"""Translate core errors into HTTP responses."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .errors import (
    BadRequestError,
    BookingError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)

STATUS_BY_ERROR = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BadRequestError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_409_CONFLICT,
}


def status_for(exc: BookingError) -> int:
    return STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(_: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc), content={"detail": exc.message, "kind": exc.kind})
