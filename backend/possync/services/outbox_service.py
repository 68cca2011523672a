# Overview: Service-layer operations for the sync outbox; durable queue of pending local mutations.

"""
Outbox Service

WHY: A local mutation and its outbox entry must commit together. If either
is lost the device silently diverges from the remote backend.

ATOMICITY:
enqueue() only flushes. It runs inside the caller's transaction, so an
aborted mutation leaves no entry and an aborted enqueue undoes the mutation.

COLLAPSING (one row per entity):
- INSERT/UPDATE after INSERT -> INSERT (still one upsert)
- UPDATE after UPDATE        -> UPDATE
- DELETE after anything      -> DELETE (prior payload is irrelevant)
- INSERT/UPDATE after DELETE -> the new upsert (id was re-used)
A collapse keeps the FIFO position, bumps revision and clears failure state.

ACKNOWLEDGMENT:
mark_pushed() deletes only entries whose revision is unchanged since they were
read, so an edit made while a push was in flight is pushed again next time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from sqlalchemy import and_, or_

from ..extensions import db
from ..models import OutboxEntry
from ..models.sync import OPERATIONS, OP_INSERT, OP_DELETE
from .entity_registry import get_spec
from possync.time_utils import now_ms


class OutboxValidationError(Exception):
    """Raised when an outbox entry would be malformed."""
    pass


@dataclass(frozen=True)
class PendingEntry:
    """
    Detached copy of an outbox row.

    The push engine holds these across the network call instead of ORM rows,
    which are expired on commit and would reload the current revision.
    """

    id: int
    entity_type: str
    entity_id: str
    operation: str
    enqueued_at: int
    revision: int
    attempt_count: int
    mutated_at: int

    @property
    def cursor(self) -> tuple[int, int]:
        return (self.enqueued_at, self.id)


def snapshot(entry: OutboxEntry) -> PendingEntry:
    return PendingEntry(
        id=entry.id,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        operation=entry.operation,
        enqueued_at=entry.enqueued_at,
        revision=entry.revision,
        attempt_count=entry.attempt_count,
        mutated_at=entry.mutated_at,
    )


def _collapse(existing: str, incoming: str) -> str:
    if incoming == OP_DELETE:
        return OP_DELETE
    if existing == OP_INSERT:
        return OP_INSERT
    return incoming


def enqueue(
    entity_type: str,
    entity_id: str,
    operation: str,
    *,
    at: Optional[int] = None,
) -> OutboxEntry:
    """
    Record a pending mutation, collapsing into an existing entry for the same id.

    Args:
        entity_type: Registered entity type (table name)
        entity_id: Record id
        operation: INSERT, UPDATE or DELETE
        at: Mutation time in epoch ms (defaults to now)

    Returns:
        The pending OutboxEntry (new or collapsed)

    Raises:
        OutboxValidationError: If the operation is unknown
        UnknownEntityTypeError: If the entity type is not registered
    """
    if operation not in OPERATIONS:
        raise OutboxValidationError(f"Invalid operation. Must be one of: {', '.join(OPERATIONS)}")
    get_spec(entity_type)

    entry = db.session.query(OutboxEntry).filter_by(
        entity_type=entity_type,
        entity_id=entity_id,
    ).first()

    now = at if at is not None else now_ms()
    if entry is None:
        entry = OutboxEntry(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            enqueued_at=now,
            mutated_at=now,
            attempt_count=0,
            revision=1,
        )
        db.session.add(entry)
    else:
        entry.operation = _collapse(entry.operation, operation)
        entry.revision = (entry.revision or 0) + 1
        entry.attempt_count = 0
        entry.last_error = None
        entry.mutated_at = now

    db.session.flush()
    return entry


def next_batch(
    entity_type: str,
    limit: int,
    *,
    operations: Optional[Sequence[str]] = None,
    after: Optional[tuple[int, int]] = None,
    max_attempts: Optional[int] = None,
) -> list[OutboxEntry]:
    """
    Pending entries of one type, oldest first.

    Args:
        entity_type: Registered entity type
        limit: Maximum number of entries
        operations: Restrict to these operations (e.g. upserts only)
        after: Keyset cursor (enqueued_at, id) of the last entry already handled
        max_attempts: Exclude parked entries with attempt_count >= max_attempts

    Returns:
        List of OutboxEntry ordered by (enqueued_at, id)
    """
    query = db.session.query(OutboxEntry).filter(OutboxEntry.entity_type == entity_type)

    if operations:
        query = query.filter(OutboxEntry.operation.in_(list(operations)))

    if after is not None:
        enqueued_at, entry_id = after
        query = query.filter(
            or_(
                OutboxEntry.enqueued_at > enqueued_at,
                and_(OutboxEntry.enqueued_at == enqueued_at, OutboxEntry.id > entry_id),
            )
        )

    if max_attempts is not None:
        query = query.filter(OutboxEntry.attempt_count < max_attempts)

    return query.order_by(OutboxEntry.enqueued_at.asc(), OutboxEntry.id.asc()).limit(limit).all()


def mark_pushed(entries: Iterable[OutboxEntry]) -> int:
    """
    Remove acknowledged entries.

    Entries are matched on (id, revision): an entry collapsed with a newer
    mutation after it was read stays pending.

    Returns:
        Number of entries removed
    """
    removed = 0
    for entry in entries:
        removed += db.session.query(OutboxEntry).filter(
            OutboxEntry.id == entry.id,
            OutboxEntry.revision == entry.revision,
        ).delete(synchronize_session="fetch")
    db.session.flush()
    return removed


def mark_failed(entry: OutboxEntry, error: str) -> Optional[OutboxEntry]:
    """
    Count a rejected attempt and keep the entry pending.

    Returns:
        The updated entry, or None if it was collapsed or removed meanwhile
    """
    current = db.session.query(OutboxEntry).filter(
        OutboxEntry.id == entry.id,
        OutboxEntry.revision == entry.revision,
    ).first()
    if current is None:
        return None
    current.attempt_count = (current.attempt_count or 0) + 1
    current.last_error = error
    db.session.flush()
    return current


def record_transport_error(entries: Iterable[OutboxEntry], error: str) -> None:
    """Note a transport failure on entries without counting an attempt."""
    ids = [entry.id for entry in entries]
    if not ids:
        return
    db.session.query(OutboxEntry).filter(OutboxEntry.id.in_(ids)).update(
        {OutboxEntry.last_error: error},
        synchronize_session="fetch",
    )
    db.session.flush()


def discard(entity_type: str, entity_id: str) -> bool:
    """Drop the pending entry of a record whose local edit was superseded remotely."""
    removed = db.session.query(OutboxEntry).filter_by(
        entity_type=entity_type,
        entity_id=entity_id,
    ).delete(synchronize_session="fetch")
    db.session.flush()
    return removed > 0


def get_entry(entity_type: str, entity_id: str) -> Optional[OutboxEntry]:
    return db.session.query(OutboxEntry).filter_by(
        entity_type=entity_type,
        entity_id=entity_id,
    ).first()


def pending_delete_at(entity_type: str, entity_id: str) -> Optional[int]:
    """Time of a pending local DELETE for the record, if any."""
    entry = get_entry(entity_type, entity_id)
    if entry is None or entry.operation != OP_DELETE:
        return None
    return entry.mutated_at


def pending_count(entity_type: Optional[str] = None) -> int:
    query = db.session.query(OutboxEntry)
    if entity_type:
        query = query.filter(OutboxEntry.entity_type == entity_type)
    return query.count()


def parked_entries(max_attempts: int) -> list[OutboxEntry]:
    """Entries whose rejected attempts reached max_attempts; never auto-deleted."""
    return db.session.query(OutboxEntry).filter(
        OutboxEntry.attempt_count >= max_attempts,
    ).order_by(OutboxEntry.enqueued_at.asc(), OutboxEntry.id.asc()).all()


def reset_attempts(entity_type: Optional[str] = None) -> int:
    """
    Un-park entries so the next cycle retries them.

    Returns:
        Number of entries reset
    """
    query = db.session.query(OutboxEntry).filter(OutboxEntry.attempt_count > 0)
    if entity_type:
        get_spec(entity_type)
        query = query.filter(OutboxEntry.entity_type == entity_type)
    count = query.update(
        {OutboxEntry.attempt_count: 0, OutboxEntry.last_error: None},
        synchronize_session="fetch",
    )
    db.session.flush()
    return count


def list_entries(
    *,
    entity_type: Optional[str] = None,
    parked_only: bool = False,
    max_attempts: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[OutboxEntry], int]:
    """
    List pending entries for inspection.

    Returns:
        Tuple of (list of OutboxEntry, total count)
    """
    query = db.session.query(OutboxEntry)
    if entity_type:
        query = query.filter(OutboxEntry.entity_type == entity_type)
    if parked_only and max_attempts is not None:
        query = query.filter(OutboxEntry.attempt_count >= max_attempts)

    total = query.count()

    query = query.order_by(OutboxEntry.enqueued_at.asc(), OutboxEntry.id.asc())
    query = query.offset(offset).limit(limit)

    return query.all(), total
