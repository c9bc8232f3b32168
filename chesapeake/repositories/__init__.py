"""
Repository package for data access layer.
"""
from chesapeake.repositories.base import BaseRepository
from chesapeake.repositories.custom_order import CustomOrderRepository
from chesapeake.repositories.order import OrderItemRepository, OrderRepository
from chesapeake.repositories.order_counter import OrderCounterRepository
from chesapeake.repositories.product import ProductRepository

__all__ = [
    "BaseRepository",
    "OrderRepository",
    "OrderItemRepository",
    "OrderCounterRepository",
    "CustomOrderRepository",
    "ProductRepository",
]
