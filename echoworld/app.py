"""
FastAPI application entry point for the EchoWorld API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from echoworld.config import get_settings
from echoworld.errors import EchoWorldError
from echoworld.routes import router

logger = logging.getLogger(__name__)


async def handle_echoworld_error(request: Request, exc: EchoWorldError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.code, "detail": str(exc)},
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "SERVER_ERROR", "detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="EchoWorld API", version="0.1.0")
    app.add_exception_handler(EchoWorldError, handle_echoworld_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
