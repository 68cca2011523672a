# Overview: Dependency ordering table and per-type description of every syncable entity.

"""
Entity Registry

WHY: Push and pull are one generic algorithm; the only per-type knowledge
they need is which model backs a type and which types it references.

ORDERING:
- ENTITY_SPECS is listed parents-first (a topological order of PARENTS)
- Upserts are pushed and pulls applied in that order
- Deletes are pushed in reverse order so the remote never sees a parent
  disappear while children still point at it
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import (
    User,
    Category,
    Vendor,
    Product,
    Variant,
    ProductComponent,
    Inventory,
    GoodsReceiving,
    GoodsReceivingItem,
    Transaction,
    TransactionItem,
    CashWithdrawal,
)


class UnknownEntityTypeError(Exception):
    """Raised when an entity type is not registered for sync."""
    pass


@dataclass(frozen=True)
class EntitySpec:
    entity_type: str
    model: type
    parents: tuple[str, ...] = ()

    @property
    def table(self) -> str:
        return self.model.__tablename__


ENTITY_SPECS: tuple[EntitySpec, ...] = (
    EntitySpec("users", User),
    EntitySpec("categories", Category),
    EntitySpec("vendors", Vendor),
    EntitySpec("products", Product, ("categories",)),
    EntitySpec("variants", Variant, ("products",)),
    EntitySpec("product_components", ProductComponent, ("products", "variants")),
    EntitySpec("inventory", Inventory, ("products", "variants")),
    EntitySpec("goods_receiving", GoodsReceiving, ("vendors",)),
    EntitySpec("goods_receiving_items", GoodsReceivingItem, ("goods_receiving", "products", "variants")),
    EntitySpec("transactions", Transaction, ("users",)),
    EntitySpec("transaction_items", TransactionItem, ("transactions", "products", "variants")),
    EntitySpec("cash_withdrawals", CashWithdrawal, ("users",)),
)

_BY_TYPE = {spec.entity_type: spec for spec in ENTITY_SPECS}


def get_spec(entity_type: str) -> EntitySpec:
    try:
        return _BY_TYPE[entity_type]
    except KeyError:
        raise UnknownEntityTypeError(f"Unknown entity type: {entity_type}")


def entity_types() -> list[str]:
    return [spec.entity_type for spec in ENTITY_SPECS]


def push_order() -> list[EntitySpec]:
    """Parents before children (inserts and updates)."""
    return list(ENTITY_SPECS)


def delete_order() -> list[EntitySpec]:
    """Children before parents."""
    return list(reversed(ENTITY_SPECS))


def pull_order() -> list[EntitySpec]:
    """Parents before children."""
    return list(ENTITY_SPECS)


def descendants(entity_type: str) -> set[str]:
    """All types that reference entity_type directly or transitively."""
    found: set[str] = set()
    frontier = [entity_type]
    while frontier:
        current = frontier.pop()
        for spec in ENTITY_SPECS:
            if current in spec.parents and spec.entity_type not in found:
                found.add(spec.entity_type)
                frontier.append(spec.entity_type)
    return found


def validate_ordering() -> None:
    """
    Check that every parent is registered and listed before its children.

    Raises:
        ValueError: If the table is not a topological order
    """
    seen: set[str] = set()
    for spec in ENTITY_SPECS:
        for parent in spec.parents:
            if parent not in _BY_TYPE:
                raise ValueError(f"{spec.entity_type} references unregistered type {parent}")
            if parent not in seen:
                raise ValueError(f"{spec.entity_type} is listed before its parent {parent}")
        seen.add(spec.entity_type)
