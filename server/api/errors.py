import logging

from core.error_capture import capture_exception
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from integrations.errors import IntegrationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


async def integration_error_handler(request: Request, exc: IntegrationError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception):
    capture_exception(
        exc, tags={"path": request.url.path, "method": request.method}
    )
    return error_response(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Every error leaves the API as ``{"ok": false, "error": message}``."""
    app.add_exception_handler(IntegrationError, integration_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
