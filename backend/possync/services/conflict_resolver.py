# Overview: Deterministic merge policy for pulled records colliding with local state.

"""
Conflict Resolver

POLICY: last-write-wins on updated_at, with the synced flag deciding ties.

| local state              | remote upsert                      | remote delete                     |
|--------------------------|------------------------------------|-----------------------------------|
| absent                   | APPLY_REMOTE                       | IGNORE                            |
| absent, pending DELETE   | APPLY_REMOTE if newer, else KEEP   | IGNORE (drop local DELETE entry)  |
| synced                   | APPLY_REMOTE if not older          | DELETE_LOCAL if not older         |
| unsynced (pending edit)  | APPLY_REMOTE if strictly newer     | DELETE_LOCAL if strictly newer    |

Whenever remote beats a pending local mutation, the outbox entry is
discarded: pushing it would re-send superseded data.

Comparisons are always against the currently stored updated_at, so applying
the same page twice or an older page later never regresses a record.

KNOWN EDGE CASE:
A remote delete older than a pending local edit loses; the pending upsert
recreates the record remotely on the next push.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .sync_types import RemoteChange


class Action(str, Enum):
    APPLY_REMOTE = "APPLY_REMOTE"
    KEEP_LOCAL = "KEEP_LOCAL"
    DELETE_LOCAL = "DELETE_LOCAL"
    IGNORE = "IGNORE"


@dataclass(frozen=True)
class MergeDecision:
    action: Action
    discard_pending: bool = False
    reason: str = ""


def resolve(
    local,
    remote: RemoteChange,
    *,
    pending_delete_at: Optional[int] = None,
) -> MergeDecision:
    """
    Decide what a pulled change does to local state.

    Args:
        local: Local record (SyncableMixin) or None when absent locally
        remote: The pulled change
        pending_delete_at: Mutation time of a queued local DELETE, if any

    Returns:
        MergeDecision
    """
    if local is None:
        if pending_delete_at is None:
            if remote.deleted:
                return MergeDecision(Action.IGNORE, reason="remote delete of unknown record")
            return MergeDecision(Action.APPLY_REMOTE, reason="new remote record")

        if remote.deleted:
            # Both sides deleted; nothing left to push
            return MergeDecision(Action.IGNORE, discard_pending=True, reason="deleted on both sides")
        if remote.updated_at > pending_delete_at:
            return MergeDecision(Action.APPLY_REMOTE, discard_pending=True, reason="remote edit newer than local delete")
        return MergeDecision(Action.KEEP_LOCAL, reason="local delete newer than remote edit")

    local_updated_at = local.updated_at or 0

    if local.synced:
        if remote.updated_at < local_updated_at:
            return MergeDecision(Action.IGNORE, reason="stale remote version")
        if remote.deleted:
            return MergeDecision(Action.DELETE_LOCAL, reason="deleted remotely")
        return MergeDecision(Action.APPLY_REMOTE, reason="remote is authoritative")

    if remote.updated_at > local_updated_at:
        if remote.deleted:
            return MergeDecision(Action.DELETE_LOCAL, discard_pending=True, reason="remote delete newer than local edit")
        return MergeDecision(Action.APPLY_REMOTE, discard_pending=True, reason="remote edit newer than local edit")

    return MergeDecision(Action.KEEP_LOCAL, reason="local edit is newer or equal")
