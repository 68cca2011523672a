from __future__ import annotations

from ..extensions import db
from .base import SyncableMixin


def inventory_key(product_id: str, variant_id: str = "") -> str:
    """
    Deterministic id of the stock row for a product/variant pair.

    WHY: Two devices that start tracking the same product offline must end up
    with the same record instead of two rows fighting over one unique key.
    """
    return f"{product_id}:{variant_id or ''}"


class Inventory(SyncableMixin, db.Model):
    """
    Current stock level per product/variant.

    variant_id is "" for products without variants.
    id is always inventory_key(product_id, variant_id).
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "variant_id", name="uq_inventory_product_variant"),
    )

    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.String(64), nullable=False, default="")
    current_qty = db.Column(db.Integer, nullable=False, default=0)
    min_qty = db.Column(db.Integer, nullable=False, default=0)


class Vendor(SyncableMixin, db.Model):
    """Supplier that goods are received from."""
    __tablename__ = "vendors"

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)


class GoodsReceiving(SyncableMixin, db.Model):
    """
    Purchase/receiving document header.

    Vendor is optional (found stock, owner top-ups).
    """
    __tablename__ = "goods_receiving"

    vendor_id = db.Column(db.String(64), db.ForeignKey("vendors.id"), nullable=True, index=True)
    date = db.Column(db.BigInteger, nullable=False)
    notes = db.Column(db.Text, nullable=True)


class GoodsReceivingItem(SyncableMixin, db.Model):
    """Received line: quantity and unit cost of one product/variant."""
    __tablename__ = "goods_receiving_items"

    receiving_id = db.Column(db.String(64), db.ForeignKey("goods_receiving.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.String(64), nullable=False, default="")
    qty = db.Column(db.Integer, nullable=False)
    cost_per_unit = db.Column(db.BigInteger, nullable=False)

    # pcs, kg, liter, or custom
    unit = db.Column(db.String(32), nullable=False, default="pcs")
