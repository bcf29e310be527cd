"""FastAPI application factory for the key management API.

The storage provider and KeyManager are built once here and injected into the
router; nothing holds module-level connections.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from keyledger_core import __version__
from keyledger_core.constants import SERVICE_NAME
from keyledger_core.errors import KeyLedgerError, StorageError
from keyledger_core.logger import get_logger
from keyledger_core.manager import KeyManager
from keyledger_core.storage import load_storage_provider

from .routes import create_key_router

log = get_logger("KeyLedger.HTTP")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


def create_app(
    manager: KeyManager | None = None,
    *,
    storage_config: dict | None = None,
    cors_origins: list[str] | None = None,
    prefix: str | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        manager: KeyManager to serve. Built from ``storage_config`` (or the
            KEYLEDGER_* environment) when omitted.
        storage_config: Passed to load_storage_provider when no manager is given.
        cors_origins: Allowed CORS origins. Falls back to CORS_ORIGINS env var,
            then to all origins.
        prefix: Route prefix. Falls back to KEYLEDGER_API_PREFIX env var.
    """
    if manager is None:
        manager = KeyManager(load_storage_provider(storage_config))

    if prefix is None:
        prefix = os.getenv("KEYLEDGER_API_PREFIX", "")
    prefix = prefix.rstrip("/")

    origins = cors_origins or [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
    ]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        manager.store.close()

    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(KeyLedgerError)
    async def keyledger_error_handler(request: Request, exc: KeyLedgerError) -> JSONResponse:
        if isinstance(exc, StorageError):
            log.error(f"[HTTP] {request.method} {request.url.path} storage failure: {exc.message}")
        return _error(exc.http_status, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request body!")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _error(404, f"Endpoint not found: {request.url.path}")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception(f"[HTTP] {request.method} {request.url.path} server error")
        return _error(500, f"Internal server error: {exc}")

    app.include_router(create_key_router(manager=manager, prefix=prefix))

    return app
