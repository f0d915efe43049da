from .catalog import Product
from .auth import User, UserRole, SessionToken
from .orders import Order, OrderItem, OrderTimelineEntry, OrderStatus, PaymentMethod
from .audit import AuditLogEntry

__all__ = [
    'Product',
    'User', 'UserRole', 'SessionToken',
    'Order', 'OrderItem', 'OrderTimelineEntry', 'OrderStatus', 'PaymentMethod',
    'AuditLogEntry',
]
