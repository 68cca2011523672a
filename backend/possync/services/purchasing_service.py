# Overview: Service-layer operations for goods receiving; records the document, its lines and stock increments atomically.

"""
Purchasing Service

Receiving goods writes a header, one item per received product/variant and
the resulting stock increments in a single local transaction. The push
engine later sends them parents-first (vendor, header, items, inventory).
"""

from __future__ import annotations

from typing import Optional

from ..extensions import db
from ..models import GoodsReceiving, Vendor, inventory_key, new_id
from . import local_store
from .record_service import save_in_transaction
from .sync_runtime import request_sync
from possync.time_utils import now_ms


class ReceivingValidationError(Exception):
    """Raised when goods receiving data fails validation."""
    pass


def record_goods_receiving(
    *,
    vendor_id: Optional[str],
    items: list[dict],
    date: Optional[int] = None,
    notes: Optional[str] = None,
) -> GoodsReceiving:
    """
    Record received goods and increase stock.

    Args:
        vendor_id: Supplier (optional)
        items: Dicts with product_id, variant_id, qty, cost_per_unit, unit
        date: Business date in epoch ms (defaults to now)
        notes: Free text

    Returns:
        Created GoodsReceiving

    Raises:
        ReceivingValidationError: If validation fails
    """
    if not items:
        raise ReceivingValidationError("A receiving needs at least one item")
    for item in items:
        if not item.get("product_id"):
            raise ReceivingValidationError("Every item needs a product_id")
        if int(item.get("qty", 0)) <= 0:
            raise ReceivingValidationError("Item qty must be positive")

    now = now_ms()
    receiving_id = new_id()

    with local_store.transaction():
        if vendor_id and db.session.get(Vendor, vendor_id) is None:
            raise ReceivingValidationError(f"Vendor {vendor_id} not found")

        receiving = save_in_transaction(
            "goods_receiving",
            {"vendor_id": vendor_id, "date": date or now, "notes": notes},
            record_id=receiving_id,
            at=now,
        )

        for item in items:
            variant_id = item.get("variant_id") or ""
            qty = int(item["qty"])
            save_in_transaction(
                "goods_receiving_items",
                {
                    "receiving_id": receiving_id,
                    "product_id": item["product_id"],
                    "variant_id": variant_id,
                    "qty": qty,
                    "cost_per_unit": int(item.get("cost_per_unit", 0)),
                    "unit": item.get("unit") or "pcs",
                },
                at=now,
            )

            stock = local_store.get_by_id("inventory", inventory_key(item["product_id"], variant_id))
            current = stock.current_qty if stock is not None else 0
            save_in_transaction(
                "inventory",
                {"product_id": item["product_id"], "variant_id": variant_id, "current_qty": current + qty},
                at=now,
            )

    request_sync()
    return receiving
