"""
Exception handlers — every failure leaves the API as {"success": false, "error": "..."}.

Routers raise HTTPException with a readable detail; request bodies that fail
pydantic validation and unexpected exceptions are folded into the same
envelope here so the client only ever has one shape to handle.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from schoolhub.core.database import UNIQUE_VIOLATION
from schoolhub.core.logging import get_logger
from schoolhub.utils.response import error_response

logger = get_logger("errors")


def format_validation_errors(errors: list[dict]) -> str:
    """Join pydantic error entries into one human-readable line."""
    messages = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        msg = err.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(messages) or "Invalid request"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = format_validation_errors(exc.errors())
    logger.warning("%s %s -> 422: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response(message),
    )


async def database_exception_handler(request: Request, exc: APIError):
    if exc.code == UNIQUE_VIOLATION:
        logger.warning("%s %s -> 409: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=error_response("Record already exists"))
    logger.error("%s %s -> database error %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(exc.message or "Database request failed"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("Internal server error"),
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(APIError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
