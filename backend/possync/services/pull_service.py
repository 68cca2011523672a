# Overview: Pull phase of a sync cycle; merges remote changes newer than each type's watermark.

"""
Pull Service

PER TYPE (parents before children):
1. Fetch the page after the watermark, ordered by (updated_at, id)
2. Resolve every row against local state (conflict_resolver)
3. Apply decisions and advance the watermark in ONE local transaction
4. Repeat until a short page

FAILURE:
A page that cannot be fetched or applied leaves the watermark where it was;
the type resumes from there next cycle. Types referencing a failed type are
skipped for this cycle so children never land before their parents.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from . import local_store, outbox_service
from .conflict_resolver import Action, resolve
from .entity_registry import EntitySpec, descendants, pull_order
from .sync_errors import TransportError
from .sync_types import PhaseReport, RemotePage, TypeReport, Watermark


logger = logging.getLogger(__name__)

# Guards against a backend that keeps answering full pages without progressing
MAX_PAGES_PER_TYPE = 1000


def pull_changes(
    gateway,
    *,
    page_size: int = 200,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> PhaseReport:
    """
    Fetch and merge remote changes for every entity type.

    Args:
        gateway: RemoteGateway (or any object with fetch_changed_since)
        page_size: Rows requested per page
        should_cancel: Polled between entity types

    Returns:
        PhaseReport with per-type counters

    Raises:
        AuthError: If the remote rejected the session
        LocalStoreError: If a page could not be applied locally
    """
    report = PhaseReport()
    blocked: set[str] = set()

    for spec in pull_order():
        if should_cancel is not None and should_cancel():
            logger.info("Pull cancelled before %s", spec.entity_type)
            report.cancelled = True
            break

        type_report = report.for_type(spec.entity_type)
        if spec.entity_type in blocked:
            type_report.failed = True
            type_report.error = "Skipped: a referenced type failed to pull"
            continue

        try:
            _pull_type(gateway, spec, type_report, page_size)
        except TransportError as exc:
            logger.warning("Pull of %s failed: %s", spec.entity_type, exc)
            type_report.failed = True
            type_report.error = str(exc)
            blocked |= descendants(spec.entity_type)

    return report


def _pull_type(gateway, spec: EntitySpec, type_report: TypeReport, page_size: int) -> None:
    for _ in range(MAX_PAGES_PER_TYPE):
        with local_store.transaction():
            watermark = local_store.get_watermark(spec.entity_type)

        page = gateway.fetch_changed_since(spec.entity_type, watermark, page_size)
        if not page.changes:
            return

        with local_store.transaction():
            advanced = _apply_page(spec, page, type_report)
            local_store.advance_watermark(spec.entity_type, advanced)

        if advanced <= watermark:
            logger.warning("Pull of %s made no progress past %s", spec.entity_type, watermark)
            return
        if not page.has_more:
            return

    logger.warning("Pull of %s stopped after %d pages", spec.entity_type, MAX_PAGES_PER_TYPE)


def _apply_page(spec: EntitySpec, page: RemotePage, type_report: TypeReport) -> Watermark:
    """
    Merge one page. Runs inside the caller's transaction.

    Returns:
        Watermark of the last row in the page
    """
    newest = Watermark()
    for change in page.changes:
        local = local_store.get_by_id(spec.entity_type, change.entity_id)
        pending_delete_at = None
        if local is None:
            pending_delete_at = outbox_service.pending_delete_at(spec.entity_type, change.entity_id)

        decision = resolve(local, change, pending_delete_at=pending_delete_at)

        if decision.action == Action.APPLY_REMOTE:
            values = dict(change.values)
            values["id"] = change.entity_id
            # Never let a merge move updated_at backwards
            local_updated_at = local.updated_at if local is not None else 0
            values["updated_at"] = max(change.updated_at, local_updated_at or 0)
            local_store.upsert(spec.entity_type, values, synced=True)
            type_report.applied += 1
        elif decision.action == Action.DELETE_LOCAL:
            local_store.delete(spec.entity_type, change.entity_id)
            type_report.applied += 1
        else:
            type_report.skipped += 1

        if decision.discard_pending:
            outbox_service.discard(spec.entity_type, change.entity_id)

        logger.debug(
            "%s:%s %s (%s)", spec.entity_type, change.entity_id, decision.action.value, decision.reason,
        )
        newest = max(newest, Watermark(change.updated_at, change.entity_id))

    return newest
