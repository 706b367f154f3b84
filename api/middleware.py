"""
Global middleware and exception handlers.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from utils.errors import AppError

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Classified failures: code + safe message only, details stay in the log."""
    if exc.status_code >= 500:
        logger.error("%s %s — %s %s", request.method, request.url.path, exc.code, exc.details)
    else:
        logger.info("%s %s — %s", request.method, request.url.path, exc.code)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "message": exc.message},
        headers=headers,
    )


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware and exception handlers."""

    app.add_exception_handler(AppError, app_error_handler)

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response
