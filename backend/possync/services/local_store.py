# Overview: Local store operations used by the sync engine; scoped transactions over the on-device database.

"""
Local Store

WHY: The sync engine never holds records or a transaction across a network
call. Each step opens a short transaction, reads a batch or applies a page,
and commits.

TRANSACTIONS:
- transaction() commits on success and rolls back on any error
- SQLAlchemy failures surface as LocalStoreError (fatal for the sync cycle)
- Nothing in this module commits on its own; callers scope their writes

STATE:
Records, outbox entries, watermarks and the coordinator state all live in
tables of the local database. There is no process-wide cached copy.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import SyncWatermark, SyncState
from ..models.sync import STATE_IDLE, STATE_RUNNING
from .entity_registry import get_spec
from .sync_errors import LocalStoreError
from .sync_types import Watermark


SYNC_STATE_ID = 1


@contextmanager
def transaction() -> Iterator:
    """
    Scope a unit of local work.

    Raises:
        LocalStoreError: If the database rejected the work (rolled back)
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise LocalStoreError(str(exc)) from exc
    except Exception:
        db.session.rollback()
        raise


def get_by_id(entity_type: str, entity_id: str):
    model = get_spec(entity_type).model
    return db.session.get(model, entity_id)


def add(record) -> None:
    db.session.add(record)


def upsert(entity_type: str, values: dict, *, synced: bool):
    """
    Insert or overwrite a record from wire values.

    Unknown keys are ignored. Returns the record.
    """
    model = get_spec(entity_type).model
    entity_id = values["id"]
    record = db.session.get(model, entity_id)
    if record is None:
        record = model(id=entity_id)
        db.session.add(record)
    record.apply_wire(values)
    record.synced = synced
    db.session.flush()
    return record


def delete(entity_type: str, entity_id: str) -> bool:
    record = get_by_id(entity_type, entity_id)
    if record is None:
        return False
    db.session.delete(record)
    db.session.flush()
    return True


def mark_synced(entity_type: str, entity_id: str, updated_at: int) -> bool:
    """
    Flag a record as matching the remote copy.

    Only applies when the record still carries the pushed updated_at; a local
    edit made while the push was in flight keeps the record unsynced.
    """
    record = get_by_id(entity_type, entity_id)
    if record is None or record.updated_at != updated_at:
        return False
    record.synced = True
    return True


def get_watermark(entity_type: str) -> Watermark:
    row = db.session.get(SyncWatermark, entity_type)
    if row is None:
        return Watermark()
    return Watermark(updated_at=row.updated_at, last_id=row.last_id)


def advance_watermark(entity_type: str, watermark: Watermark) -> Watermark:
    """
    Move the watermark forward. A value at or behind the stored one is ignored.

    Returns the stored watermark after the call.
    """
    row = db.session.get(SyncWatermark, entity_type)
    if row is None:
        row = SyncWatermark(entity_type=entity_type, updated_at=0, last_id="")
        db.session.add(row)
    current = Watermark(updated_at=row.updated_at or 0, last_id=row.last_id or "")
    if watermark > current:
        row.updated_at = watermark.updated_at
        row.last_id = watermark.last_id
        current = watermark
    db.session.flush()
    return current


def reset_watermark(entity_type: str) -> bool:
    """Forget the pull position of a type so the next cycle refetches everything."""
    get_spec(entity_type)
    row = db.session.get(SyncWatermark, entity_type)
    if row is None:
        return False
    db.session.delete(row)
    db.session.flush()
    return True


def list_watermarks() -> list[SyncWatermark]:
    return db.session.query(SyncWatermark).order_by(SyncWatermark.entity_type.asc()).all()


def get_sync_state() -> SyncState:
    state = db.session.get(SyncState, SYNC_STATE_ID)
    if state is None:
        state = SyncState(id=SYNC_STATE_ID, status=STATE_IDLE)
        db.session.add(state)
        db.session.flush()
    return state


def recover_interrupted_cycle() -> bool:
    """
    Reset a RUNNING state left behind by a killed process.

    Returns True if a stale RUNNING state was found.
    """
    state = get_sync_state()
    if state.status != STATE_RUNNING:
        return False
    state.status = STATE_IDLE
    state.last_error = "Previous sync cycle was interrupted"
    db.session.flush()
    return True
