# Overview: Service-layer operations for sales transactions; records the sale, its items and stock changes atomically.

"""
Sales Service

WHY: A sale touches three entity types (transaction header, items, stock).
All of them and their outbox entries commit in one local transaction, so a
crash can never leave a sale without its items or stock movement.

STOCK:
- Simple products decrement their own inventory row
- Products with components (recipes) decrement each component by
  required_qty * sold qty; components are assumed to share the stock unit
"""

from __future__ import annotations

from ..extensions import db
from ..models import ProductComponent, Transaction, User, inventory_key, new_id
from ..models.sales import PAYMENT_METHODS, STATUS_COMPLETED, STATUS_VOIDED
from . import local_store
from .record_service import save_in_transaction
from .sync_runtime import request_sync
from possync.time_utils import now_ms


class TransactionNotFoundError(Exception):
    """Raised when a transaction is not found."""
    pass


class TransactionValidationError(Exception):
    """Raised when transaction data fails validation."""
    pass


def _stock_movements(items: list[dict]) -> dict[tuple[str, str], int]:
    """Quantity to deduct per (product_id, variant_id)."""
    movements: dict[tuple[str, str], int] = {}
    for item in items:
        components = db.session.query(ProductComponent).filter_by(
            parent_product_id=item["product_id"],
        ).order_by(ProductComponent.sort_order.asc()).all()

        if not components:
            key = (item["product_id"], item.get("variant_id") or "")
            movements[key] = movements.get(key, 0) + item["qty"]
            continue

        for comp in components:
            key = (comp.component_product_id, comp.component_variant_id or "")
            movements[key] = movements.get(key, 0) + comp.required_qty * item["qty"]
    return movements


def _adjust_stock(product_id: str, variant_id: str, delta: int, at: int) -> None:
    existing = local_store.get_by_id("inventory", inventory_key(product_id, variant_id))
    current = existing.current_qty if existing is not None else 0
    save_in_transaction(
        "inventory",
        {"product_id": product_id, "variant_id": variant_id, "current_qty": current + delta},
        at=at,
    )


def record_transaction(
    *,
    user_id: str,
    items: list[dict],
    payment_method: str,
) -> Transaction:
    """
    Record a completed sale.

    Args:
        user_id: Cashier making the sale
        items: Dicts with product_id, variant_id, product_name, variant_name,
            qty, unit_price (minor units)
        payment_method: CASH or QRIS

    Returns:
        Created Transaction

    Raises:
        TransactionValidationError: If validation fails
    """
    if payment_method not in PAYMENT_METHODS:
        raise TransactionValidationError(
            f"Invalid payment_method. Must be one of: {', '.join(sorted(PAYMENT_METHODS))}"
        )
    if not items:
        raise TransactionValidationError("A transaction needs at least one item")
    for item in items:
        if not item.get("product_id"):
            raise TransactionValidationError("Every item needs a product_id")
        if int(item.get("qty", 0)) <= 0:
            raise TransactionValidationError("Item qty must be positive")

    now = now_ms()
    txn_id = new_id()

    with local_store.transaction():
        if db.session.get(User, user_id) is None:
            raise TransactionValidationError(f"User {user_id} not found")

        total = sum(int(item["qty"]) * int(item["unit_price"]) for item in items)
        txn = save_in_transaction(
            "transactions",
            {
                "user_id": user_id,
                "date": now,
                "total": total,
                "payment_method": payment_method,
                "status": STATUS_COMPLETED,
            },
            record_id=txn_id,
            at=now,
        )

        for item in items:
            qty = int(item["qty"])
            unit_price = int(item["unit_price"])
            save_in_transaction(
                "transaction_items",
                {
                    "transaction_id": txn_id,
                    "product_id": item["product_id"],
                    "variant_id": item.get("variant_id") or "",
                    "product_name": item.get("product_name") or "",
                    "variant_name": item.get("variant_name"),
                    "qty": qty,
                    "unit_price": unit_price,
                    "subtotal": qty * unit_price,
                },
                at=now,
            )

        for (product_id, variant_id), qty in _stock_movements(items).items():
            _adjust_stock(product_id, variant_id, -qty, now)

    request_sync()
    return txn


def void_transaction(transaction_id: str) -> Transaction:
    """
    Void a completed sale. Stock is not restored (matches the till workflow:
    voided goods are usually already consumed).

    Raises:
        TransactionNotFoundError: If the transaction does not exist
        TransactionValidationError: If it is already voided
    """
    with local_store.transaction():
        txn = db.session.get(Transaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        if txn.status == STATUS_VOIDED:
            raise TransactionValidationError("Transaction is already voided")
        txn = save_in_transaction("transactions", {"status": STATUS_VOIDED}, record_id=transaction_id)
    request_sync()
    return txn
