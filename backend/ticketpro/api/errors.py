"""
Renders domain errors as typed JSON bodies:

    {"error": "conflict", "detail": "This ticket was just booked by someone else", "fields": {}}
"""

from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from ticketpro.core.errors import BookingError, InvalidTransition, ValidationFailed
from ticketpro.core.logging import get_logger

logger = get_logger(__name__)

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


async def booking_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, BookingError) else BookingError(str(exc))
    content: dict[str, Any] = {
        "error": error.code,
        "detail": error.message,
        "fields": error.errors if isinstance(error, ValidationFailed) else {},
    }
    if isinstance(error, InvalidTransition):
        content["current_status"] = error.current

    if error.status_code >= 500:
        logger.warning("request_unavailable", error=error.code, detail=error.message)
    else:
        logger.info("request_rejected", error=error.code, detail=error.message)
    return JSONResponse(status_code=error.status_code, content=content)


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    BookingError: booking_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
