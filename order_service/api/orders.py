"""
Order API endpoints
"""
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from typing import List, Optional

from order_service.api.dependencies import (
    get_event_publisher,
    get_order_service,
    get_payment_ledger,
    get_principal,
    unwrap,
)
from order_service.domain.principal import Principal
from order_service.publishers.event_publisher import EventPublisher
from order_service.schemas.order import (
    CashAppPaymentCreate,
    Order,
    OrderCancel,
    OrderCreate,
    OrderCreatedResponse,
    OrderListResponse,
    OrderStatus,
    OrderStatusUpdate,
    PaymentCreate,
    PaymentRecordedResponse,
    PaymentStatusUpdate,
)
from order_service.services.order_service import OrderService
from order_service.services.payment_ledger import PaymentLedger, PaymentReceipt

router = APIRouter(prefix="/orders", tags=["orders"])


def _schedule_payment_event(
    background_tasks: BackgroundTasks,
    publisher: EventPublisher,
    receipt: PaymentReceipt,
) -> None:
    background_tasks.add_task(
        publisher.publish_payment_recorded, receipt.order, receipt.payment_id, receipt.duplicate
    )


@router.post("", response_model=OrderCreatedResponse, status_code=status.HTTP_201_CREATED, summary="Create order")
async def create_order(
    order_data: OrderCreate,
    response: Response,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    publisher: EventPublisher = Depends(get_event_publisher),
    principal: Principal = Depends(get_principal),
):
    """
    Create a new order
    
    Process:
    1. Validate payload
    2. Return the existing order if the idempotency key was seen before
    3. Save order with initialized ledger and history
    4. Publish OrderCreated event to RabbitMQ after the response
    
    Returns 201 for a new order, 200 for a repeated idempotency key.
    """
    creation = unwrap(await service.create_order(order_data, principal))
    if creation.created:
        background_tasks.add_task(publisher.publish_order_created, creation.order)
    else:
        response.status_code = status.HTTP_200_OK
    return OrderCreatedResponse(id=creation.order.id)


@router.get("/my-orders", response_model=List[Order], summary="Get my orders")
async def get_my_orders(
    user_id: Optional[str] = Query(None, alias="userId", description="Target user (admin only)"),
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(get_principal),
):
    """
    Order history of the calling user, newest first
    
    - **userId**: Another user's history (admin only)
    """
    return unwrap(await service.get_user_orders(principal, user_id))


@router.get("/{order_id}", response_model=Order, summary="Get order by ID")
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(get_principal),
):
    """
    Retrieve a specific order by ID (owner, staff or admin)
    
    - **order_id**: Order ID
    """
    return unwrap(await service.get_order(order_id, principal))


@router.put("/{order_id}/status", response_model=Order, summary="Update order status")
async def update_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    publisher: EventPublisher = Depends(get_event_publisher),
    principal: Principal = Depends(get_principal),
):
    """
    Update order status (staff or admin)
    
    - **status**: pending, approved, processing, ready, delivered, picked-up, completed, cancelled
    - **note**: Optional note for the status history
    """
    change = unwrap(await service.update_order_status(order_id, status_data, principal))
    background_tasks.add_task(publisher.publish_order_status_changed, change.order, change.previous_status)
    return change.order


@router.put("/{order_id}/cancel", response_model=Order, summary="Cancel order")
async def cancel_order(
    order_id: str,
    cancel_data: OrderCancel,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    publisher: EventPublisher = Depends(get_event_publisher),
    principal: Principal = Depends(get_principal),
):
    """
    Cancel an order
    
    Owners may cancel pending or approved orders; admins may cancel any
    order that is not delivered, picked up or completed.
    """
    change = unwrap(await service.cancel_order(order_id, cancel_data.reason, principal))
    background_tasks.add_task(publisher.publish_order_status_changed, change.order, change.previous_status)
    return change.order


@router.put("/{order_id}/payment-status", response_model=Order, summary="Verify payment status")
async def update_payment_status(
    order_id: str,
    status_data: PaymentStatusUpdate,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    principal: Principal = Depends(get_principal),
):
    """
    Set payment status after verifying payments (staff or admin)
    
    - **paymentStatus**: unpaid, pending, partial, paid, refunded
    """
    return unwrap(await ledger.update_payment_status(order_id, status_data, principal))


@router.post(
    "/{order_id}/payments",
    response_model=PaymentRecordedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment"
)
async def record_payment(
    order_id: str,
    payment_data: PaymentCreate,
    background_tasks: BackgroundTasks,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    publisher: EventPublisher = Depends(get_event_publisher),
    principal: Principal = Depends(get_principal),
):
    """
    Record a payment (owner or admin)
    
    - **amount**: Payment amount
    - **method**: credit-card, cash or cash-app
    - **date**: When the payment happened (defaults to now)
    """
    receipt = unwrap(await ledger.record_payment(order_id, payment_data, principal))
    _schedule_payment_event(background_tasks, publisher, receipt)
    return PaymentRecordedResponse(payment_id=receipt.payment_id)


@router.post(
    "/{order_id}/payments/cashapp",
    response_model=PaymentRecordedResponse,
    summary="Record Cash App payment"
)
async def process_cash_app_payment(
    order_id: str,
    payment_data: CashAppPaymentCreate,
    background_tasks: BackgroundTasks,
    ledger: PaymentLedger = Depends(get_payment_ledger),
    publisher: EventPublisher = Depends(get_event_publisher),
    principal: Principal = Depends(get_principal),
):
    """
    Record a Cash App payment by confirmation ID
    
    - **amount**: 0 pays the outstanding balance
    - **confirmationId**: Cash App confirmation code; repeats update the existing payment
    """
    receipt = unwrap(await ledger.process_cash_app_payment(
        order_id,
        payment_data.amount,
        payment_data.confirmation_id,
        payment_data.notes,
        principal,
    ))
    _schedule_payment_event(background_tasks, publisher, receipt)
    return PaymentRecordedResponse(payment_id=receipt.payment_id)


@router.get("", response_model=OrderListResponse, summary="Get all orders")
async def get_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Only orders with this status"),
    service: OrderService = Depends(get_order_service),
    principal: Principal = Depends(get_principal),
):
    """
    Retrieve all orders, newest first (admin only)
    
    - **status**: Optional status filter
    """
    return unwrap(await service.get_all_orders(principal, status_filter))
