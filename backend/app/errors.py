"""Engine error taxonomy and its HTTP rendering."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for every error the matching and booking engine raises."""

    status_code = 400
    error = "engine_error"
    retryable = False

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict:
        payload = {
            "error": self.error,
            "detail": self.message,
            "retryable": self.retryable,
        }
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


class ValidationError(EngineError):
    """Malformed or out-of-range input, tagged with the offending field."""

    status_code = 422
    error = "validation_error"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class NotFoundError(EngineError):
    status_code = 404
    error = "not_found"


class CapacityConflict(EngineError):
    """The trip's capacity was consumed by a concurrent booking.

    The only retryable error: callers must re-run matching before booking again.
    """

    status_code = 409
    error = "capacity_conflict"
    retryable = True


class InvalidStateTransition(EngineError):
    status_code = 409
    error = "invalid_state_transition"

    def __init__(self, entity: str, current: str, target: str, message: str | None = None, **context):
        super().__init__(
            message or f"{entity} cannot move from '{current}' to '{target}'",
            **context,
        )
        self.entity = entity
        self.current = current
        self.target = target


class AuthorizationError(EngineError):
    status_code = 403
    error = "forbidden"


class IneligibleTrip(EngineError):
    """The trip fails a hard eligibility rule other than capacity at booking time."""

    status_code = 409
    error = "ineligible_trip"


async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, _engine_error_handler)
