# backend/channelhub/routes/system.py
"""
System health endpoint.

Unauthenticated liveness probe with a database round-trip.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db, CHANNEL_REGISTRY_KEY
from channelhub.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database check failed
    """
    database_health = check_database_health()
    registry = current_app.extensions.get(CHANNEL_REGISTRY_KEY)

    healthy = database_health["status"] == "healthy"
    response = {
        "success": healthy,
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
            "channel_adapters": registry.types() if registry else [],
        },
    }
    return response, 200 if healthy else 503
