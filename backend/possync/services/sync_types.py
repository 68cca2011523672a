# Overview: Typed contracts exchanged between the sync services and the remote gateway.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True, order=True)
class Watermark:
    """Keyset position of the newest pulled remote row: (updated_at, id)."""

    updated_at: int = 0
    last_id: str = ""


@dataclass(frozen=True)
class RemoteChange:
    """One row returned by a pull; deleted=True is a remote soft delete."""

    entity_id: str
    updated_at: int
    values: dict[str, Any] = field(default_factory=dict)
    deleted: bool = False


@dataclass(frozen=True)
class RemotePage:
    changes: list[RemoteChange]
    has_more: bool


@dataclass(frozen=True)
class RecordOutcome:
    """Per-record result of a batched upsert or delete."""

    entity_id: str
    ok: bool
    error: Optional[str] = None


class CycleOutcome(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    PARTIALLY_FAILED = "PARTIALLY_FAILED"
    FAILED = "FAILED"


@dataclass
class TypeReport:
    """Per-entity-type counters for one phase of a cycle."""

    entity_type: str
    pushed: int = 0
    deleted: int = 0
    rejected: int = 0
    applied: int = 0
    skipped: int = 0
    failed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "pushed": self.pushed,
            "deleted": self.deleted,
            "rejected": self.rejected,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "error": self.error,
        }


@dataclass
class PhaseReport:
    """Result of a push or pull phase."""

    types: dict[str, TypeReport] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    aborted: bool = False
    cancelled: bool = False

    def for_type(self, entity_type: str) -> TypeReport:
        if entity_type not in self.types:
            self.types[entity_type] = TypeReport(entity_type)
        return self.types[entity_type]

    @property
    def has_failures(self) -> bool:
        if self.aborted or self.cancelled:
            return True
        return any(t.failed or t.rejected for t in self.types.values())

    def to_dict(self) -> dict:
        return {
            "types": {name: report.to_dict() for name, report in self.types.items()},
            "warnings": list(self.warnings),
            "aborted": self.aborted,
            "cancelled": self.cancelled,
        }
