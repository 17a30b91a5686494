# backend/pos_events/routes/system.py
"""System health endpoint (unsigned, for load balancers)."""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Branch, EventFailure
from ..models.events import FAILURE_OPEN
from ..responses import api_response, timestamp_meta

system_bp = Blueprint("system", __name__, url_prefix="/api/v1")


def check_database_health() -> dict:
    """
    Check database connectivity.

    Also reports how many deferred writes sit in the dead letter.
    """
    start_time = time.time()
    try:
        branch_count = db.session.query(Branch).count()
        open_failures = db.session.query(EventFailure).filter_by(status=FAILURE_OPEN).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "branches": branch_count,
                "failed_events": open_failures,
            },
        }
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
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return api_response(
        healthy,
        200 if healthy else 503,
        "ok" if healthy else "degraded",
        {"database": database},
        timestamp_meta(),
    )
