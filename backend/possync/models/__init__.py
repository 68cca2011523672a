from .base import SyncableMixin, new_id
from .auth import User
from .catalog import Category, Product, Variant, ProductComponent
from .inventory import Inventory, Vendor, GoodsReceiving, GoodsReceivingItem, inventory_key
from .sales import Transaction, TransactionItem, CashWithdrawal
from .sync import OutboxEntry, SyncWatermark, SyncState

__all__ = [
    'SyncableMixin', 'new_id',
    'User',
    'Category', 'Product', 'Variant', 'ProductComponent',
    'Inventory', 'Vendor', 'GoodsReceiving', 'GoodsReceivingItem', 'inventory_key',
    'Transaction', 'TransactionItem', 'CashWithdrawal',
    'OutboxEntry', 'SyncWatermark', 'SyncState',
]
