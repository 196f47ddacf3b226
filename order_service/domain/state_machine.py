"""
Order status state machine.

Nominal flow:
    pending -> approved -> processing -> ready -> delivered | picked-up -> completed
with cancelled reachable from any non-terminal status.

Only the terminal guard is enforced: staff may move a non-terminal order
to any status, including backwards (e.g. ready -> processing).
"""
from datetime import datetime, timezone
from typing import Optional

from order_service.domain import policy
from order_service.domain.principal import Principal
from order_service.domain.result import Err, conflict, forbidden, unauthorized
from order_service.schemas.order import (
    Order,
    OrderStatus,
    PaymentStatus,
    PaymentStatusHistoryEntry,
    StatusHistoryEntry,
)

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Statuses in which the owning customer may still cancel
CUSTOMER_CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.APPROVED})

# Statuses in which not even an admin may cancel
ADMIN_UNCANCELLABLE_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.PICKED_UP,
    OrderStatus.COMPLETED,
})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def check_status_update(order: Order, principal: Principal) -> Optional[Err]:
    """Reason ``principal`` may not change the status of ``order``, if any"""
    if not principal.is_authenticated:
        return unauthorized("Authentication is required to update order status.")
    if not policy.can_update_status(principal):
        return forbidden("You are not authorized to update order status.")
    if is_terminal(order.status):
        return conflict(f"Cannot update status for an order that is already {order.status.value}.")
    return None


def check_cancellation(order: Order, principal: Principal) -> Optional[Err]:
    """Reason ``principal`` may not cancel ``order``, if any"""
    if not principal.is_authenticated:
        return unauthorized("Authentication is required to cancel an order.")

    admin = policy.is_admin(principal)
    if not admin and not policy.is_owner(order, principal):
        return forbidden("You are not authorized to cancel this order.")

    if order.status == OrderStatus.CANCELLED:
        return conflict("Order is already cancelled.")
    if admin:
        if order.status in ADMIN_UNCANCELLABLE_STATUSES:
            return conflict(f"Admin cannot cancel an order that is already {order.status.value}.")
    elif order.status not in CUSTOMER_CANCELLABLE_STATUSES:
        return conflict(f'Order cannot be cancelled by user when status is "{order.status.value}".')
    return None


def status_entry(status: OrderStatus, note: Optional[str], updated_by: str) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        status=status,
        timestamp=utcnow(),
        note=note if note is not None else f"Status changed to {status.value}",
        updated_by=updated_by,
    )


def cancellation_entry(principal: Principal, reason: str) -> StatusHistoryEntry:
    actor = "admin" if policy.is_admin(principal) else "user"
    return status_entry(
        OrderStatus.CANCELLED,
        f"Order cancelled by {actor}. Reason: {reason}",
        principal.actor_id,
    )


def payment_status_entry(status: PaymentStatus, note: Optional[str], updated_by: str) -> PaymentStatusHistoryEntry:
    return PaymentStatusHistoryEntry(
        status=status,
        timestamp=utcnow(),
        note=note if note is not None else f"Payment status changed to {status.value}",
        updated_by=updated_by,
    )
