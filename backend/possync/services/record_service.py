# Overview: Service-layer writes for syncable records; each mutation commits together with its outbox entry.

"""
Record Service

WHY: Every local write must be pushed eventually. Writing the record and
enqueuing its outbox entry in the same transaction is what makes that true:
either both survive a crash or neither does.

STAMPING:
- updated_at = now (epoch ms), synced = False on every write; updates and
  deletes are stamped at least one ms after the version they replace
- restaurant_id from SYNC_RESTAURANT_ID when the caller omits it
- new inventory ids are derived from (product_id, variant_id); an explicit
  id must agree with them

The *_in_transaction helpers only flush; callers that write several records
atomically (sales, purchasing) compose them inside one local_store.transaction().
"""

from __future__ import annotations

from typing import Optional

from flask import current_app

from ..models import inventory_key, new_id
from ..models.sync import OP_DELETE, OP_INSERT, OP_UPDATE
from . import local_store, outbox_service
from .entity_registry import get_spec
from .sync_runtime import request_sync
from possync.time_utils import now_ms


class RecordNotFoundError(Exception):
    """Raised when a record to update or delete does not exist."""
    pass


class RecordValidationError(Exception):
    """Raised when record values fail validation."""
    pass


PROTECTED_FIELDS = {"id", "updated_at", "synced"}


def _record_id(entity_type: str, values: dict, record_id: Optional[str]) -> str:
    if entity_type != "inventory":
        return record_id or new_id()

    if record_id is None:
        product_id = values.get("product_id")
        if not product_id:
            raise RecordValidationError("Inventory requires product_id")
        return inventory_key(product_id, values.get("variant_id") or "")

    # An explicit id must agree with the product/variant it encodes
    product_id, _, variant_id = record_id.partition(":")
    if "product_id" in values and values["product_id"] != product_id:
        raise RecordValidationError(f"Inventory {record_id} does not belong to product {values['product_id']}")
    if "variant_id" in values and (values["variant_id"] or "") != variant_id:
        raise RecordValidationError(f"Inventory {record_id} does not belong to variant {values['variant_id']}")
    return record_id


def save_in_transaction(
    entity_type: str,
    values: dict,
    *,
    record_id: Optional[str] = None,
    at: Optional[int] = None,
):
    """
    Create or update a record and enqueue it. Flushes only.

    Returns:
        The saved record
    """
    model = get_spec(entity_type).model
    columns = set(model.column_names())
    unknown = set(values) - columns
    if unknown:
        raise RecordValidationError(f"Unknown fields for {entity_type}: {', '.join(sorted(unknown))}")

    stamp = at if at is not None else now_ms()
    entity_id = _record_id(entity_type, values, record_id)
    record = local_store.get_by_id(entity_type, entity_id)
    operation = OP_UPDATE
    if record is None:
        record = model(id=entity_id)
        operation = OP_INSERT
        if entity_type == "inventory":
            product_id, _, variant_id = entity_id.partition(":")
            record.product_id = product_id
            record.variant_id = variant_id

    for name, value in values.items():
        if name not in PROTECTED_FIELDS:
            setattr(record, name, value)
    if not record.restaurant_id:
        record.restaurant_id = current_app.config.get("SYNC_RESTAURANT_ID", "")

    # updated_at never moves backwards, even if the device clock does
    record.updated_at = max(stamp, (record.updated_at or 0) + 1) if operation == OP_UPDATE else stamp
    record.synced = False
    if operation == OP_INSERT:
        local_store.add(record)

    outbox_service.enqueue(entity_type, entity_id, operation, at=record.updated_at)
    return record


def delete_in_transaction(entity_type: str, record_id: str, *, at: Optional[int] = None) -> None:
    """Delete a record and enqueue the remote delete. Flushes only."""
    record = local_store.get_by_id(entity_type, record_id)
    if record is None:
        raise RecordNotFoundError(f"{entity_type} {record_id} not found")
    stamp = at if at is not None else now_ms()
    # The delete must outrank the version it removes
    stamp = max(stamp, (record.updated_at or 0) + 1)
    local_store.delete(entity_type, record_id)
    outbox_service.enqueue(entity_type, record_id, OP_DELETE, at=stamp)


def save_record(
    entity_type: str,
    values: dict,
    *,
    record_id: Optional[str] = None,
    at: Optional[int] = None,
):
    """
    Create or update one record.

    Args:
        entity_type: Registered entity type
        values: Column values (id, updated_at and synced are managed here)
        record_id: Existing id to update, or a client-chosen id for a new record
        at: Mutation time in epoch ms (defaults to now)

    Returns:
        The saved record

    Raises:
        RecordValidationError: If values name unknown columns
        LocalStoreError: If the write failed (nothing was recorded)
    """
    with local_store.transaction():
        record = save_in_transaction(entity_type, values, record_id=record_id, at=at)
    request_sync()
    return record


def update_record(entity_type: str, record_id: str, values: dict):
    """
    Update an existing record.

    Raises:
        RecordNotFoundError: If the record does not exist
    """
    with local_store.transaction():
        if local_store.get_by_id(entity_type, record_id) is None:
            raise RecordNotFoundError(f"{entity_type} {record_id} not found")
        record = save_in_transaction(entity_type, values, record_id=record_id)
    request_sync()
    return record


def delete_record(entity_type: str, record_id: str) -> None:
    """
    Delete one record locally and queue the remote delete.

    Raises:
        RecordNotFoundError: If the record does not exist
    """
    with local_store.transaction():
        delete_in_transaction(entity_type, record_id)
    request_sync()
