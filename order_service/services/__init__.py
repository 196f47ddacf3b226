"""
Services package
"""
from order_service.services.order_service import OrderCreation, OrderService, StatusChange
from order_service.services.payment_ledger import PaymentLedger, PaymentReceipt

__all__ = ["OrderCreation", "OrderService", "PaymentLedger", "PaymentReceipt", "StatusChange"]
