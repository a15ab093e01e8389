from .enums import Role, OrderType, OrderStatus, PaymentStatus, TransactionType
from .auth import User, SessionToken
from .parties import Warehouse, Distributor, Client
from .inventory import Product, WarehouseInventory, DistributorInventory, InventoryTransaction
from .orders import Order, OrderItem, OrderSequence
from .payments import Payment, ClientPayment

__all__ = [
    'Role', 'OrderType', 'OrderStatus', 'PaymentStatus', 'TransactionType',
    'User', 'SessionToken',
    'Warehouse', 'Distributor', 'Client',
    'Product', 'WarehouseInventory', 'DistributorInventory', 'InventoryTransaction',
    'Order', 'OrderItem', 'OrderSequence',
    'Payment', 'ClientPayment',
]
