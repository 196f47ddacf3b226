"""
Models package
"""
from order_service.models.order import OrderRecord

__all__ = ["OrderRecord"]
