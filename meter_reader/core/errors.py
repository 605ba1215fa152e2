"""Error taxonomy for the reading lifecycle and its HTTP mapping."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ReadingError(Exception):
    """Base class for failures reported to API callers."""

    kind = "READING_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(ReadingError):
    """Client sent a bad meter kind, a missing field or a bad value."""

    kind = "INVALID_INPUT"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ReadingError):
    kind = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class DuplicatePeriod(ReadingError):
    """A reading already exists for the customer, meter kind and month."""

    kind = "DUPLICATE_PERIOD"
    status_code = status.HTTP_409_CONFLICT


class AlreadyConfirmed(ReadingError):
    kind = "ALREADY_CONFIRMED"
    status_code = status.HTTP_409_CONFLICT


class ExtractionFailed(ReadingError):
    """The vision model failed or returned something that is not a reading.

    Upstream failures map to 502, unparseable model output to 422.
    """

    kind = "EXTRACTION_FAILED"
    status_code = status.HTTP_502_BAD_GATEWAY


class StoreUnavailable(ReadingError):
    """Transient database failure; the whole operation is safe to retry."""

    kind = "STORE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def _error_body(kind: str, message: str) -> dict[str, str]:
    return {"detail": message, "kind": kind}


async def reading_error_handler(request: Request, exc: ReadingError) -> JSONResponse:
    """Render a ReadingError as a JSON response with its status code."""
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as 400 INVALID_INPUT."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(problems) or "Invalid request"
    logger.info("Rejected request %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(InvalidInput.kind, message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReadingError, reading_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
