# backend/possync/routes/system.py
"""
System health endpoint.

Reports database connectivity and the size of the sync backlog so the till
can warn when a device has been offline for a long time.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import OutboxEntry, SyncState

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        pending = db.session.query(OutboxEntry).count()
        state = db.session.get(SyncState, 1)

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "outbox_pending": pending,
                "sync_status": state.status if state else "IDLE",
                "last_outcome": state.last_outcome if state else None,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    remote_configured = bool(current_app.config.get("SYNC_REMOTE_URL"))
    status_code = 200 if database["status"] == "healthy" else 503
    return jsonify({
        "status": database["status"],
        "database": database,
        "sync": {"remote_configured": remote_configured},
    }), status_code
