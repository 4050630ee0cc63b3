"""SQLAlchemy models."""

from app.models.base import Base
from app.models.catalog import Location, MenuItem, ServiceableCity
from app.models.loyalty import LoyaltyTransaction, TransactionType
from app.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from app.models.profile import Admin, Profile

__all__ = [
    # Base
    "Base",
    # Customers
    "Profile",
    "Admin",
    # Catalog
    "ServiceableCity",
    "Location",
    "MenuItem",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    # Loyalty
    "LoyaltyTransaction",
    "TransactionType",
]
