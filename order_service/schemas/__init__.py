"""
Schemas package
"""
from order_service.schemas.order import (
    CashAppPaymentCreate,
    DeliveryMethod,
    Order,
    OrderCancel,
    OrderCreate,
    OrderCreatedResponse,
    OrderListResponse,
    OrderStatus,
    OrderStatusUpdate,
    PaymentCreate,
    PaymentMethod,
    PaymentRecordedResponse,
    PaymentStatus,
    PaymentStatusUpdate,
    PaymentTransaction,
)

__all__ = [
    "CashAppPaymentCreate",
    "DeliveryMethod",
    "Order",
    "OrderCancel",
    "OrderCreate",
    "OrderCreatedResponse",
    "OrderListResponse",
    "OrderStatus",
    "OrderStatusUpdate",
    "PaymentCreate",
    "PaymentMethod",
    "PaymentRecordedResponse",
    "PaymentStatus",
    "PaymentStatusUpdate",
    "PaymentTransaction",
]
