from __future__ import annotations

from ..extensions import db
from possync.time_utils import now_ms, to_utc_z


OP_INSERT = "INSERT"
OP_UPDATE = "UPDATE"
OP_DELETE = "DELETE"
OPERATIONS = (OP_INSERT, OP_UPDATE, OP_DELETE)
UPSERT_OPERATIONS = (OP_INSERT, OP_UPDATE)

STATE_IDLE = "IDLE"
STATE_RUNNING = "RUNNING"


class OutboxEntry(db.Model):
    """
    Pending local mutation awaiting remote acknowledgment.

    WHY: Devices write locally first and push later; the outbox is the durable
    record of what still has to reach the remote backend.

    DESIGN:
    - At most one row per (entity_type, entity_id): later mutations collapse
      into the existing row instead of appending
    - enqueued_at is the FIFO position and survives collapses
    - revision increments on every collapse so an acknowledgment for an older
      payload never removes a newer pending mutation
    - attempt_count only counts remote rejections; transport failures leave
      it alone and just record last_error
    """
    __tablename__ = "sync_outbox"
    __table_args__ = (
        db.UniqueConstraint("entity_type", "entity_id", name="uq_sync_outbox_entity"),
        db.Index("ix_sync_outbox_type_order", "entity_type", "enqueued_at", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    operation = db.Column(db.String(16), nullable=False)
    enqueued_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    # Time of the latest collapsed mutation; enqueued_at keeps the queue position
    mutated_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    attempt_count = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    revision = db.Column(db.Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<OutboxEntry id={self.id} {self.entity_type}:{self.entity_id} "
            f"op={self.operation} attempts={self.attempt_count}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "operation": self.operation,
            "enqueued_at": to_utc_z(self.enqueued_at),
            "mutated_at": to_utc_z(self.mutated_at),
            "attempt_count": self.attempt_count,
            "last_error": self.last_error,
            "revision": self.revision,
        }


class SyncWatermark(db.Model):
    """
    Newest remote change already pulled, per entity type.

    updated_at alone is ambiguous when several remote rows share one
    timestamp across a page boundary, so the id of the last applied row is
    kept as a keyset tie-breaker.
    """
    __tablename__ = "sync_watermarks"

    entity_type = db.Column(db.String(64), primary_key=True)
    updated_at = db.Column(db.BigInteger, nullable=False, default=0)
    last_id = db.Column(db.String(64), nullable=False, default="")

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "updated_at": self.updated_at,
            "updated_at_iso": to_utc_z(self.updated_at) if self.updated_at else None,
            "last_id": self.last_id,
        }


class SyncState(db.Model):
    """
    Singleton row describing the coordinator's last known state.

    A RUNNING status found at startup means the process died mid-cycle;
    it is reset to IDLE since no cycle is resumable.
    """
    __tablename__ = "sync_state"

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=STATE_IDLE)
    last_outcome = db.Column(db.String(32), nullable=True)
    last_started_at = db.Column(db.BigInteger, nullable=True)
    last_finished_at = db.Column(db.BigInteger, nullable=True)
    last_error = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "last_outcome": self.last_outcome,
            "last_started_at": to_utc_z(self.last_started_at),
            "last_finished_at": to_utc_z(self.last_finished_at),
            "last_error": self.last_error,
        }
