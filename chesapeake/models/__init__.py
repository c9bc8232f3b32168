"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from chesapeake.models.custom_order import CustomOrder, CustomOrderStatus
from chesapeake.models.order import Order, OrderItem
from chesapeake.models.order_counter import OrderCounter
from chesapeake.models.product import Product

__all__ = [
    "Order",
    "OrderItem",
    "OrderCounter",
    "CustomOrder",
    "CustomOrderStatus",
    "Product",
]
