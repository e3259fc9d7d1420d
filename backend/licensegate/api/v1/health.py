"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app

from licensegate.api.deps import json_response, timing
from licensegate.core.extensions import ping_database

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Report liveness, database reachability and the deployed version."""

    db_ok = ping_database()
    payload = {
        "status": "ok",
        "db": "ok" if db_ok else "fail",
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if db_ok else 503)
