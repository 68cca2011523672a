# Overview: Flask API routes for sync operations; triggers cycles and exposes outbox/watermark state.

"""
Sync Routes

Local operator surface of the device (bound to localhost by the launcher).

- POST /api/sync/run            run a cycle now (coalesced if one is running)
- POST /api/sync/cancel         stop the running cycle between entity types
- GET  /api/sync/status         coordinator state, last outcome, watermarks
- GET  /api/sync/outbox         pending entries (?parked=true, ?entity_type=)
- POST /api/sync/outbox/retry   un-park rejected entries
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import local_store, outbox_service
from ..services.entity_registry import UnknownEntityTypeError
from ..services.sync_runtime import SyncNotConfiguredError, get_coordinator
from ..services.sync_types import CycleOutcome


sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.post("/run")
def run_sync_route():
    """
    Run a sync cycle.

    Returns:
        200 with RunResult; 502 when the cycle FAILED; 503 when sync is not configured
    """
    try:
        coordinator = get_coordinator()
    except SyncNotConfiguredError as e:
        return jsonify({"error": str(e)}), 503

    result = coordinator.run_cycle()
    status = 200
    if result.report is not None and result.report.outcome == CycleOutcome.FAILED:
        current_app.logger.warning("Sync cycle failed: %s", result.report.error)
        status = 502
    return jsonify(result.to_dict()), status


@sync_bp.post("/cancel")
def cancel_sync_route():
    try:
        coordinator = get_coordinator()
    except SyncNotConfiguredError as e:
        return jsonify({"error": str(e)}), 503
    was_running = coordinator.is_running
    coordinator.cancel()
    return jsonify({"cancelled": was_running})


@sync_bp.get("/status")
def sync_status_route():
    """
    Returns:
        {state, running, last_report, pending, parked, watermarks[]}
    """
    max_attempts = current_app.config.get("SYNC_MAX_ATTEMPTS", 3)
    with local_store.transaction():
        state = local_store.get_sync_state().to_dict()
        watermarks = [w.to_dict() for w in local_store.list_watermarks()]
        pending = outbox_service.pending_count()
        parked = len(outbox_service.parked_entries(max_attempts))

    coordinator = current_app.extensions.get("possync.coordinator")
    last_report = coordinator.last_report if coordinator else None

    return jsonify({
        "state": state,
        "running": coordinator.is_running if coordinator else False,
        "last_report": last_report.to_dict() if last_report else None,
        "pending": pending,
        "parked": parked,
        "watermarks": watermarks,
    })


@sync_bp.get("/outbox")
def list_outbox_route():
    """
    List pending outbox entries.

    Query parameters:
    - entity_type: Restrict to one type
    - parked: Only entries that reached SYNC_MAX_ATTEMPTS (default: false)
    - limit: Maximum results (default: 100)
    - offset: Pagination offset (default: 0)

    Returns:
        {items: OutboxEntry[], count: int, limit: int, offset: int}
    """
    entity_type = request.args.get("entity_type") or None
    parked = request.args.get("parked", "false").lower() == "true"
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    entries, total = outbox_service.list_entries(
        entity_type=entity_type,
        parked_only=parked,
        max_attempts=current_app.config.get("SYNC_MAX_ATTEMPTS", 3),
        limit=limit,
        offset=offset,
    )

    return jsonify({
        "items": [e.to_dict() for e in entries],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@sync_bp.post("/outbox/retry")
def retry_outbox_route():
    """
    Reset attempt counters so parked entries are pushed again.

    Request body (optional):
    {
        "entity_type": "products"  // restrict to one type
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        with local_store.transaction():
            count = outbox_service.reset_attempts(data.get("entity_type"))
    except UnknownEntityTypeError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"reset": count})
