# src/daer/web/errors.py
"""Map exceptions to JSON error responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from daer.core.errors import AppError, ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message, "statusCode": status_code}
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("http.app_error %s %s: %s", request.method, request.url.path, exc)
    return _error(exc.message, exc.status_code)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(exc.message, 404)


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    return _error(exc.message, 400)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Validation failed", "statusCode": 422, "details": exc.errors()},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("http.unhandled %s %s", request.method, request.url.path)
    return _error("Internal server error", 500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = ["install_error_handlers"]
