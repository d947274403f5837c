"""
FastAPI application for unit-reconciler.

PURPOSE: Application factory, error mapping and server runner.
AI CONTEXT: Creates app with all routes registered.

ERROR MAPPING:
- NotManagedError -> 409 Conflict (foreign file, nothing written)
- DecodeError / EncodeError / ValueError -> 422 Unprocessable Entity
- FileNotFoundError -> 404 Not Found
- ManagerError -> 502 Bad Gateway (systemctl failed)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..__version__ import __version__
from ..config import Config
from ..errors import ManagerError, NotManagedError
from .routes import router

if TYPE_CHECKING:
    from ..reconciler import Reconciler

__all__ = ["create_app", "run_api"]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:  # noqa: ARG001
    """
    Manage application lifecycle with startup/shutdown logging.

    Args:
        app: The FastAPI application instance (provided by FastAPI).

    Yields:
        None. Control returns to FastAPI to handle requests.
    """
    logger.info("unit-reconciler API starting (v%s)", __version__)
    yield
    logger.info("unit-reconciler API shutting down")


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


async def _not_managed_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error(409, exc)


async def _invalid_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error(422, exc)


async def _not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error(404, exc)


async def _manager_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return _error(502, exc)


def create_app(reconciler: Reconciler | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Factory function using the application factory pattern for
    testability. Reconciliations are serialized through one lock stored
    on app.state, so two requests never reconcile at the same time.

    Args:
        reconciler: Engine to apply with. When None, one is built from
            Config on first use.

    Returns:
        Configured FastAPI application instance.

    Example:
        >>> from fastapi.testclient import TestClient
        >>> client = TestClient(create_app(reconciler))
        >>> client.get('/health').json()
        {'status': 'ok', 'version': '0.3.0'}
    """
    app = FastAPI(
        title="unit-reconciler",
        description="Reconcile systemd services without clobbering foreign unit files",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.reconciler = reconciler
    app.state.lock = threading.Lock()

    app.add_exception_handler(NotManagedError, _not_managed_handler)
    app.add_exception_handler(ValueError, _invalid_handler)
    app.add_exception_handler(FileNotFoundError, _not_found_handler)
    app.add_exception_handler(ManagerError, _manager_handler)

    app.include_router(router)
    return app


def run_api(
    host: str = Config.DEFAULT_HOST,
    port: int = Config.DEFAULT_PORT,
    reconciler: Reconciler | None = None,
    log_level: str = "info",
) -> None:
    """
    Launch the unit-reconciler HTTP API server.

    Starts a uvicorn ASGI server hosting the FastAPI application.

    Args:
        host: Network interface to bind the server to. Use '127.0.0.1'
            for local-only access (default).
        port: TCP port number for the HTTP server. Default 8000.
        reconciler: Engine to apply with; built from Config when None.
        log_level: Uvicorn logging verbosity.

    Returns:
        None. This function blocks until the server is stopped (Ctrl+C).

    Raises:
        OSError: If the port is already in use or host is invalid.
    """
    uvicorn.run(
        create_app(reconciler),
        host=host,
        port=port,
        log_level=log_level,
    )


# For direct execution
if __name__ == "__main__":
    run_api()
