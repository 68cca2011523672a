from __future__ import annotations

from ..extensions import db
from .base import SyncableMixin


class Category(SyncableMixin, db.Model):
    """Menu or raw-material grouping of products."""
    __tablename__ = "categories"

    name = db.Column(db.String(255), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    # MENU or RAW_MATERIAL
    category_type = db.Column(db.String(32), nullable=False, default="MENU")


class Product(SyncableMixin, db.Model):
    """
    Sellable menu item or raw material.

    Prices are stored in minor currency units (no decimals on the wire).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_restaurant_active", "restaurant_id", "is_active"),
    )

    category_id = db.Column(db.String(64), db.ForeignKey("categories.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.BigInteger, nullable=False, default=0)
    image_path = db.Column(db.String(512), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # MENU_ITEM or RAW_MATERIAL
    product_type = db.Column(db.String(32), nullable=False, default="MENU_ITEM")


class Variant(SyncableMixin, db.Model):
    """Size/flavour option of a product, priced as an adjustment on the base price."""
    __tablename__ = "variants"

    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    price_adjustment = db.Column(db.BigInteger, nullable=False, default=0)


class ProductComponent(SyncableMixin, db.Model):
    """
    Bill-of-materials line: how much of a raw material one menu item consumes.

    component_variant_id is "" when the component has no variant.
    """
    __tablename__ = "product_components"

    parent_product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    component_product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    component_variant_id = db.Column(db.String(64), nullable=False, default="")
    required_qty = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="pcs")
    sort_order = db.Column(db.Integer, nullable=False, default=0)
