from .catalog import Product
from .accounts import Customer, Supplier
from .inventory import InventoryLog
from .orders import Order, OrderItem
from .purchases import Purchase, PurchaseItem, Import, ImportItem
from .payments import PaymentTransaction, EmptyReturn

__all__ = [
    'Product',
    'Customer', 'Supplier',
    'InventoryLog',
    'Order', 'OrderItem',
    'Purchase', 'PurchaseItem', 'Import', 'ImportItem',
    'PaymentTransaction', 'EmptyReturn',
]
