from __future__ import annotations

from ..extensions import db
from .base import SyncableMixin


PAYMENT_CASH = "CASH"
PAYMENT_QRIS = "QRIS"
PAYMENT_METHODS = {PAYMENT_CASH, PAYMENT_QRIS}

STATUS_COMPLETED = "COMPLETED"
STATUS_VOIDED = "VOIDED"


class Transaction(SyncableMixin, db.Model):
    """
    Sales transaction header.

    Amounts are minor currency units. Voiding flips status; rows are never
    deleted by the business layer.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_restaurant_date", "restaurant_id", "date"),
    )

    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    date = db.Column(db.BigInteger, nullable=False)
    total = db.Column(db.BigInteger, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_COMPLETED)


class TransactionItem(SyncableMixin, db.Model):
    """
    Sold line. Product and variant names are snapshots taken at sale time,
    so renaming a product never rewrites history.
    """
    __tablename__ = "transaction_items"

    transaction_id = db.Column(db.String(64), db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.String(64), db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.String(64), nullable=False, default="")
    product_name = db.Column(db.String(255), nullable=False)
    variant_name = db.Column(db.String(255), nullable=True)
    qty = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.BigInteger, nullable=False)
    subtotal = db.Column(db.BigInteger, nullable=False)


class CashWithdrawal(SyncableMixin, db.Model):
    """Cash taken out of the drawer, attributed to a user."""
    __tablename__ = "cash_withdrawals"

    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.BigInteger, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    date = db.Column(db.BigInteger, nullable=False)
