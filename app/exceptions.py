import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from services.exceptions import (
    DatabaseQueryError,
    NotFoundOrAlreadyActioned,
    ResourceConflict,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    content = {"error": error, "message": message}
    content.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=content)


async def validation_exception_handler(request: Request, exc: ValidationError):
    return _error(400, "validation_error", str(exc), field=exc.field)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    return _error(
        400,
        "validation_error",
        first.get("msg", "Invalid request"),
        field=".".join(location) or None,
    )


async def not_found_exception_handler(request: Request, exc: NotFoundOrAlreadyActioned):
    return _error(404, "not_found_or_already_actioned", str(exc))


async def conflict_exception_handler(request: Request, exc: ResourceConflict):
    return _error(409, "conflict", f"{exc} Please refresh and try again.")


async def database_exception_handler(request: Request, exc: DatabaseQueryError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return _error(500, "database_error", "Database query failed.")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "server_error", f"Server error: {exc}")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(NotFoundOrAlreadyActioned, not_found_exception_handler)
    app.add_exception_handler(ResourceConflict, conflict_exception_handler)
    app.add_exception_handler(DatabaseQueryError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
