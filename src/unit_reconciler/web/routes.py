"""
FastAPI routes for unit-reconciler.

PURPOSE: Thin route handlers that delegate to the Reconciler.
AI CONTEXT: Routes hold no logic beyond request parsing and locking; error
translation lives in app.py.

ROUTE STRUCTURE:
- /health : liveness
- /services/{name} : PUT reconcile, GET inspect, DELETE remove
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from ..__version__ import __version__
from ..models import UnitFile
from ..reconciler import Reconciler, build_reconciler

__all__ = ["router", "get_reconciler", "ServiceRequest"]

router = APIRouter()


class ServiceRequest(BaseModel):
    """
    Desired state for one service.

    Attributes:
        unit: UnitFile.to_dict() shape: {"unit": {...}, "service": {...},
            "install": {...}}.
        env: Variables for the unit's EnvironmentFile. Ignored when the
            unit references none.
    """

    unit: dict[str, Any] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)


def get_reconciler(request: Request) -> Reconciler:
    """
    Dependency that returns the app's Reconciler.

    Builds one from Config on first use when create_app() was given none.

    Args:
        request: Current request (provided by FastAPI).

    Returns:
        The shared Reconciler.
    """
    state = request.app.state
    with state.lock:
        if state.reconciler is None:
            state.reconciler = build_reconciler()
        reconciler: Reconciler = state.reconciler
    return reconciler


ReconcilerDep = Annotated[Reconciler, Depends(get_reconciler)]


@router.get("/health")
def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok", "version": __version__}


@router.put("/services/{name}")
def put_service(
    name: str,
    body: ServiceRequest,
    request: Request,
    reconciler: ReconcilerDep,
) -> dict[str, Any]:
    """
    Reconcile a service's unit file and env file, then daemon-reload.

    Returns:
        The resulting service handle as JSON.
    """
    unit = UnitFile.from_dict(body.unit)
    with request.app.state.lock:
        handle = reconciler.new_service(name, unit, body.env)
    return handle.to_dict()


@router.get("/services/{name}")
def get_service(name: str, reconciler: ReconcilerDep) -> dict[str, Any]:
    """Report ownership of the service's files without changing anything."""
    return reconciler.inspect(name).to_dict()


@router.delete("/services/{name}", status_code=204)
def delete_service(name: str, request: Request, reconciler: ReconcilerDep) -> Response:
    """
    Disable and stop a managed service, then remove its unit file.

    The environment file is left in place.
    """
    with request.app.state.lock:
        handle = reconciler.load_service(name)
        reconciler.delete_service(handle)
    return Response(status_code=204)
