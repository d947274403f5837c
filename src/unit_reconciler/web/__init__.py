"""
HTTP API module for unit-reconciler.

PURPOSE: FastAPI surface so a deployment pipeline can reconcile services on a
host over HTTP instead of shelling in.
AI CONTEXT: Routes are thin; every decision is made by the Reconciler.

ENDPOINTS:
- PUT /services/{name}: reconcile unit + env, daemon-reload
- GET /services/{name}: ownership of the files on disk
- DELETE /services/{name}: disable --now and remove the unit file
- GET /health: liveness

USAGE:
    # Via CLI
    unit-reconciler serve --port 8000

    # Programmatically
    from unit_reconciler.web import create_app
    app = create_app(reconciler)
"""

from .app import create_app, run_api

__all__ = ["create_app", "run_api"]
