"""
Exception handlers: every error leaves the API as
    {"success": false, "message": ..., "error"?: ...}
`error` carries internal detail only when EXPOSE_ERROR_DETAIL is enabled.
"""

from typing import Any, Callable, Coroutine, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from arena.core.config import get_settings
from arena.core.exceptions import ArenaError
from arena.core.logging import get_logger

logger = get_logger(__name__)

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


def error_response(
    status_code: int,
    message: str,
    detail: Optional[Any] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content = {"success": False, "message": message}
    if detail is not None and get_settings().EXPOSE_ERROR_DETAIL:
        content["error"] = detail
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def arena_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, ArenaError) else ArenaError(str(exc))
    log = logger.error if error.status_code >= 500 else logger.info
    log(
        "request_error",
        category=error.category,
        status_code=error.status_code,
        message=error.message,
        detail=error.detail,
    )
    return error_response(error.status_code, error.message, error.detail)


async def http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, StarletteHTTPException) else StarletteHTTPException(500)
    return error_response(error.status_code, str(error.detail), headers=getattr(error, "headers", None))


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, RequestValidationError) else RequestValidationError([])
    errors = error.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        message,
        [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    ArenaError: arena_error_handler,
    StarletteHTTPException: http_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
