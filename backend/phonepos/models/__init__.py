from .auth import User, UserProfile, Role, UserRole, Permission, RolePermission, SessionToken
from .catalog import Category, Product
from .inventory import StockMovement
from .customers import Customer
from .sales import Sale, SaleLine, PaymentTransaction, SALE_STATUSES
from .purchases import Supplier, Purchase, PurchaseLine, PURCHASE_STATUSES
from .documents import DocumentSequence

__all__ = [
    'User', 'UserProfile', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
    'Category', 'Product',
    'StockMovement',
    'Customer',
    'Sale', 'SaleLine', 'PaymentTransaction', 'SALE_STATUSES',
    'Supplier', 'Purchase', 'PurchaseLine', 'PURCHASE_STATUSES',
    'DocumentSequence',
]
