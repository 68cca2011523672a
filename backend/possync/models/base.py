from __future__ import annotations

import uuid

from ..extensions import db
from possync.time_utils import now_ms, to_utc_z


def new_id() -> str:
    """Client-generated identifier, so records can be created offline."""
    return str(uuid.uuid4())


class SyncableMixin:
    """
    Sync metadata shared by every record that is replicated to the remote backend.

    WHY: Devices create and edit records offline; the sync engine only needs
    three columns to reconcile them, everything else is opaque payload.

    - id: client-generated, globally unique
    - updated_at: epoch ms of the last mutation, set by whichever side mutated
    - synced: True iff the local copy matches the last pushed/pulled remote copy
    - restaurant_id: tenant key on the shared remote backend

    WIRE FORMAT:
    to_wire() emits every column except `synced` (a purely local flag);
    apply_wire() copies known columns and ignores anything else the remote
    table carries (e.g. server-side audit columns, the `deleted` flag).
    """

    # Columns that never leave the device
    LOCAL_ONLY_COLUMNS = frozenset({"synced"})

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    restaurant_id = db.Column(db.String(64), nullable=False, default="", index=True)
    updated_at = db.Column(db.BigInteger, nullable=False, default=now_ms, index=True)
    synced = db.Column(db.Boolean, nullable=False, default=False, index=True)

    @classmethod
    def column_names(cls) -> list[str]:
        return [c.name for c in cls.__table__.columns]

    @classmethod
    def wire_columns(cls) -> list[str]:
        return [name for name in cls.column_names() if name not in cls.LOCAL_ONLY_COLUMNS]

    def to_wire(self) -> dict:
        return {name: getattr(self, name) for name in self.wire_columns()}

    def apply_wire(self, values: dict) -> None:
        for name in self.wire_columns():
            if name in values:
                setattr(self, name, values[name])

    def to_dict(self) -> dict:
        data = self.to_wire()
        data["synced"] = self.synced
        data["updated_at_iso"] = to_utc_z(self.updated_at)
        return data

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} updated_at={self.updated_at} synced={self.synced}>"
