from __future__ import annotations

from ..extensions import db
from .base import SyncableMixin


ROLE_OWNER = "OWNER"
ROLE_CASHIER = "CASHIER"


class User(SyncableMixin, db.Model):
    """
    Cashier and owner accounts shared by every device of a restaurant.

    WHY: Transactions and cash withdrawals are attributed to a user, so users
    are the root of the sales dependency chain and must exist remotely first.

    PIN hashing happens outside the sync engine; only the resulting hash and
    salt are replicated so any device can verify a PIN login offline.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_restaurant_active", "restaurant_id", "is_active"),
    )

    name = db.Column(db.String(255), nullable=False)
    pin_hash = db.Column(db.String(255), nullable=False)
    pin_salt = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_CASHIER)

    # Comma-separated feature keys a cashier may open; NULL means all
    feature_access = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.BigInteger, nullable=False)
