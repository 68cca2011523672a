"""Initial on-device schema: synced entities plus outbox, watermarks and sync state

Revision ID: 20261001_initial_sync
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_initial_sync"
down_revision = None
branch_labels = None
depends_on = None


def _sync_columns():
    return [
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("restaurant_id", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.Column("synced", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def _sync_indexes(table):
    op.create_index(f"ix_{table}_restaurant_id", table, ["restaurant_id"])
    op.create_index(f"ix_{table}_updated_at", table, ["updated_at"])
    op.create_index(f"ix_{table}_synced", table, ["synced"])


def upgrade():
    op.create_table(
        "users",
        *_sync_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("pin_hash", sa.String(length=255), nullable=False),
        sa.Column("pin_salt", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("feature_access", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("users")
    op.create_index("ix_users_restaurant_active", "users", ["restaurant_id", "is_active"])

    op.create_table(
        "categories",
        *_sync_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category_type", sa.String(length=32), nullable=False, server_default="MENU"),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("categories")

    op.create_table(
        "vendors",
        *_sync_columns(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("vendors")

    op.create_table(
        "products",
        *_sync_columns(),
        sa.Column("category_id", sa.String(length=64), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("image_path", sa.String(length=512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("product_type", sa.String(length=32), nullable=False, server_default="MENU_ITEM"),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("products")
    op.create_index("ix_products_category_id", "products", ["category_id"])
    op.create_index("ix_products_restaurant_active", "products", ["restaurant_id", "is_active"])

    op.create_table(
        "variants",
        *_sync_columns(),
        sa.Column("product_id", sa.String(length=64), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price_adjustment", sa.BigInteger(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("variants")
    op.create_index("ix_variants_product_id", "variants", ["product_id"])

    op.create_table(
        "product_components",
        *_sync_columns(),
        sa.Column("parent_product_id", sa.String(length=64), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("component_product_id", sa.String(length=64), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("component_variant_id", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("required_qty", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False, server_default="pcs"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("product_components")
    op.create_index("ix_product_components_parent_product_id", "product_components", ["parent_product_id"])
    op.create_index("ix_product_components_component_product_id", "product_components", ["component_product_id"])

    op.create_table(
        "inventory",
        *_sync_columns(),
        sa.Column("product_id", sa.String(length=64), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("current_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "variant_id", name="uq_inventory_product_variant"),
    )
    _sync_indexes("inventory")
    op.create_index("ix_inventory_product_id", "inventory", ["product_id"])

    op.create_table(
        "goods_receiving",
        *_sync_columns(),
        sa.Column("vendor_id", sa.String(length=64), sa.ForeignKey("vendors.id"), nullable=True),
        sa.Column("date", sa.BigInteger(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("goods_receiving")
    op.create_index("ix_goods_receiving_vendor_id", "goods_receiving", ["vendor_id"])

    op.create_table(
        "goods_receiving_items",
        *_sync_columns(),
        sa.Column("receiving_id", sa.String(length=64), sa.ForeignKey("goods_receiving.id"), nullable=False),
        sa.Column("product_id", sa.String(length=64), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("cost_per_unit", sa.BigInteger(), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False, server_default="pcs"),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("goods_receiving_items")
    op.create_index("ix_goods_receiving_items_receiving_id", "goods_receiving_items", ["receiving_id"])
    op.create_index("ix_goods_receiving_items_product_id", "goods_receiving_items", ["product_id"])

    op.create_table(
        "transactions",
        *_sync_columns(),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.BigInteger(), nullable=False),
        sa.Column("total", sa.BigInteger(), nullable=False),
        sa.Column("payment_method", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="COMPLETED"),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("transactions")
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_restaurant_date", "transactions", ["restaurant_id", "date"])

    op.create_table(
        "transaction_items",
        *_sync_columns(),
        sa.Column("transaction_id", sa.String(length=64), sa.ForeignKey("transactions.id"), nullable=False),
        sa.Column("product_id", sa.String(length=64), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("variant_name", sa.String(length=255), nullable=True),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.BigInteger(), nullable=False),
        sa.Column("subtotal", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("transaction_items")
    op.create_index("ix_transaction_items_transaction_id", "transaction_items", ["transaction_id"])
    op.create_index("ix_transaction_items_product_id", "transaction_items", ["product_id"])

    op.create_table(
        "cash_withdrawals",
        *_sync_columns(),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("date", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _sync_indexes("cash_withdrawals")
    op.create_index("ix_cash_withdrawals_user_id", "cash_withdrawals", ["user_id"])

    op.create_table(
        "sync_outbox",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("operation", sa.String(length=16), nullable=False),
        sa.Column("enqueued_at", sa.BigInteger(), nullable=False),
        sa.Column("mutated_at", sa.BigInteger(), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entity_type", "entity_id", name="uq_sync_outbox_entity"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sync_outbox_type_order", "sync_outbox", ["entity_type", "enqueued_at", "id"])

    op.create_table(
        "sync_watermarks",
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("last_id", sa.String(length=64), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("entity_type"),
    )

    op.create_table(
        "sync_state",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="IDLE"),
        sa.Column("last_outcome", sa.String(length=32), nullable=True),
        sa.Column("last_started_at", sa.BigInteger(), nullable=True),
        sa.Column("last_finished_at", sa.BigInteger(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade():
    op.drop_table("sync_state")
    op.drop_table("sync_watermarks")
    op.drop_index("ix_sync_outbox_type_order", table_name="sync_outbox")
    op.drop_table("sync_outbox")
    for table in (
        "cash_withdrawals",
        "transaction_items",
        "transactions",
        "goods_receiving_items",
        "goods_receiving",
        "inventory",
        "product_components",
        "variants",
        "products",
        "vendors",
        "categories",
        "users",
    ):
        op.drop_table(table)
