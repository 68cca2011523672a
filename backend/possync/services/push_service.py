# Overview: Push phase of a sync cycle; drains the outbox to the remote backend in dependency order.

"""
Push Service

ORDER:
1. Upserts for every type, parents before children
2. Deletes for every type, children before parents

PER BATCH:
- Read entries and build wire payloads in one short local transaction
- Send one batched request with no transaction open
- Apply outcomes in a second short transaction:
  acknowledged -> entry removed, record marked synced
  rejected     -> attempt counted, siblings unaffected

TRANSPORT FAILURE:
The batch keeps its entries (last_error noted, attempts unchanged) and the
rest of the push phase is skipped: later types may reference rows the remote
has not received.

PARKED ENTRIES:
Entries rejected SYNC_MAX_ATTEMPTS times are skipped and reported as
warnings. They stay queued until an operator retries them.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..models.sync import OP_DELETE, UPSERT_OPERATIONS
from . import local_store, outbox_service
from .entity_registry import EntitySpec, delete_order, push_order
from .outbox_service import PendingEntry
from .sync_errors import RecordRejected, TransportError
from .sync_types import PhaseReport, TypeReport


logger = logging.getLogger(__name__)


def _never_cancelled() -> bool:
    return False


def push_pending(
    gateway,
    *,
    batch_size: int = 50,
    max_attempts: int = 3,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PhaseReport:
    """
    Transmit pending local mutations.

    Args:
        gateway: RemoteGateway (or any object with batch_upsert/batch_delete)
        batch_size: Maximum entries per remote request
        max_attempts: Rejections after which an entry is parked
        should_cancel: Polled between entity types

    Returns:
        PhaseReport with per-type counters

    Raises:
        AuthError: If the remote rejected the session
        LocalStoreError: If a local transaction failed
    """
    should_cancel = should_cancel or _never_cancelled
    report = PhaseReport()

    steps = [(spec, False) for spec in push_order()] + [(spec, True) for spec in delete_order()]
    for spec, deleting in steps:
        if should_cancel():
            logger.info("Push cancelled before %s", spec.entity_type)
            report.cancelled = True
            break
        try:
            _push_type(gateway, spec, report.for_type(spec.entity_type), deleting, batch_size, max_attempts)
        except TransportError as exc:
            logger.warning("Push of %s aborted: %s", spec.entity_type, exc)
            type_report = report.for_type(spec.entity_type)
            type_report.failed = True
            type_report.error = str(exc)
            report.aborted = True
            break

    with local_store.transaction():
        parked = outbox_service.parked_entries(max_attempts)
        for entry in parked:
            report.warnings.append(
                f"{entry.entity_type}:{entry.entity_id} {entry.operation} parked after "
                f"{entry.attempt_count} attempts: {entry.last_error}"
            )
    if parked:
        logger.warning("%d outbox entries are parked and need manual retry", len(parked))

    return report


def _push_type(
    gateway,
    spec: EntitySpec,
    type_report: TypeReport,
    deleting: bool,
    batch_size: int,
    max_attempts: int,
) -> None:
    operations = (OP_DELETE,) if deleting else UPSERT_OPERATIONS
    cursor = None
    while True:
        with local_store.transaction():
            rows = outbox_service.next_batch(
                spec.entity_type,
                batch_size,
                operations=operations,
                after=cursor,
                max_attempts=max_attempts,
            )
            entries = [outbox_service.snapshot(row) for row in rows]
            payloads = {} if deleting else _load_payloads(spec, entries)

        if not entries:
            return
        cursor = entries[-1].cursor

        if deleting:
            _send_deletes(gateway, spec, entries, type_report, max_attempts)
        else:
            _send_upserts(gateway, spec, entries, payloads, type_report, max_attempts)

        if len(entries) < batch_size:
            return


def _load_payloads(spec: EntitySpec, entries: list[PendingEntry]) -> dict[str, dict]:
    """Wire payload per entity id; records deleted locally meanwhile are absent."""
    payloads = {}
    for entry in entries:
        record = local_store.get_by_id(spec.entity_type, entry.entity_id)
        if record is not None:
            payloads[entry.entity_id] = record.to_wire()
    return payloads


def _send_upserts(
    gateway,
    spec: EntitySpec,
    entries: list[PendingEntry],
    payloads: dict[str, dict],
    type_report: TypeReport,
    max_attempts: int,
) -> None:
    missing = [entry for entry in entries if entry.entity_id not in payloads]
    sendable = [entry for entry in entries if entry.entity_id in payloads]

    if missing:
        # Nothing left locally to push; a later DELETE entry replaces these
        with local_store.transaction():
            outbox_service.mark_pushed(missing)
        logger.info("Dropped %d %s entries whose records no longer exist", len(missing), spec.entity_type)

    if not sendable:
        return

    records = [payloads[entry.entity_id] for entry in sendable]
    try:
        outcomes = gateway.batch_upsert(spec.entity_type, records)
    except TransportError as exc:
        with local_store.transaction():
            outbox_service.record_transport_error(sendable, str(exc))
        raise

    by_id = {outcome.entity_id: outcome for outcome in outcomes}
    with local_store.transaction():
        acknowledged = []
        for entry in sendable:
            outcome = by_id.get(entry.entity_id)
            if outcome is not None and outcome.ok:
                acknowledged.append(entry)
                local_store.mark_synced(
                    spec.entity_type,
                    entry.entity_id,
                    payloads[entry.entity_id]["updated_at"],
                )
            else:
                error = outcome.error if outcome is not None else "No outcome returned"
                _reject(spec, entry, RecordRejected(entry.entity_id, error), type_report, max_attempts)
        outbox_service.mark_pushed(acknowledged)
        type_report.pushed += len(acknowledged)

    logger.info("Pushed %d %s (%d rejected)", len(acknowledged), spec.entity_type, len(sendable) - len(acknowledged))


def _tombstone(entry: PendingEntry) -> dict:
    return {"id": entry.entity_id, "updated_at": entry.mutated_at}


def _send_deletes(
    gateway,
    spec: EntitySpec,
    entries: list[PendingEntry],
    type_report: TypeReport,
    max_attempts: int,
) -> None:
    try:
        outcomes = gateway.batch_delete(spec.entity_type, [_tombstone(entry) for entry in entries])
    except TransportError as exc:
        with local_store.transaction():
            outbox_service.record_transport_error(entries, str(exc))
        raise

    by_id = {outcome.entity_id: outcome for outcome in outcomes}
    with local_store.transaction():
        acknowledged = []
        for entry in entries:
            outcome = by_id.get(entry.entity_id)
            if outcome is not None and outcome.ok:
                acknowledged.append(entry)
            else:
                error = outcome.error if outcome is not None else "No outcome returned"
                _reject(spec, entry, RecordRejected(entry.entity_id, error), type_report, max_attempts)
        outbox_service.mark_pushed(acknowledged)
        type_report.deleted += len(acknowledged)

    logger.info("Deleted %d %s remotely", len(acknowledged), spec.entity_type)


def _reject(
    spec: EntitySpec,
    entry: PendingEntry,
    rejection: RecordRejected,
    type_report: TypeReport,
    max_attempts: int,
) -> None:
    updated = outbox_service.mark_failed(entry, rejection.reason)
    type_report.rejected += 1
    type_report.error = str(rejection)
    if updated is not None and updated.attempt_count >= max_attempts:
        logger.warning(
            "%s:%s rejected %d times, parking entry: %s",
            spec.entity_type, entry.entity_id, updated.attempt_count, rejection.reason,
        )
    else:
        logger.warning("%s:%s rejected: %s", spec.entity_type, entry.entity_id, rejection.reason)
