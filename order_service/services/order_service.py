"""
Order Service - Business Logic Layer

Creation (idempotent), status transitions, cancellation and the read
path. Every operation returns a ``Result``; nothing here publishes
events or sends mail, the API layer does that after a successful call.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Union

from order_service.domain import policy
from order_service.domain.principal import Principal, Role
from order_service.domain.result import Ok, Result, Err, forbidden, not_found, unauthorized, validation_error
from order_service.domain.state_machine import (
    cancellation_entry,
    check_cancellation,
    check_status_update,
    payment_status_entry,
    status_entry,
    utcnow,
)
from order_service.repositories.document_store import ArrayAppend, DocumentStore
from order_service.repositories.order_repository import OrderRepository
from order_service.schemas.order import (
    Order,
    OrderCreate,
    OrderListResponse,
    OrderStatus,
    OrderStatusUpdate,
    PaymentStatus,
)
from order_service.services.guards import parse_payload, retry_on_stale, store_errors_as_result
from order_service.services.idempotency import IdempotencyGuard, generate_idempotency_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderCreation:
    order: Order
    created: bool


@dataclass(frozen=True)
class StatusChange:
    order: Order
    previous_status: OrderStatus


class OrderService:
    """Service layer for order lifecycle business logic"""
    
    def __init__(self, store: DocumentStore):
        self.repository = OrderRepository(store)
        self.idempotency = IdempotencyGuard(self.repository)
    
    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    @store_errors_as_result("Create order")
    async def create_order(
        self,
        order_data: Union[OrderCreate, Mapping[str, Any]],
        principal: Optional[Principal] = None,
    ) -> Result[OrderCreation]:
        """
        Create new order, or return the existing one for a repeated key
        
        Steps:
        1. Validate payload
        2. Resolve idempotency key (client-supplied or generated)
        3. Look for an order already created with that key
        4. Otherwise insert the order with initialized ledger and history
        
        Args:
            order_data: Order creation payload
            principal: Acting customer; None for guest checkout
        
        Returns:
            Ok(OrderCreation) with ``created`` False for a replay
        """
        parsed = parse_payload(OrderCreate, order_data)
        if isinstance(parsed, Err):
            return parsed
        order_data = parsed.value
        principal = principal or Principal.guest()

        user_id = principal.uid if principal.is_authenticated and principal.role != Role.SYSTEM else None
        key = order_data.idempotency_key or generate_idempotency_key()
        actor = user_id or "system"
        now = utcnow()

        document = order_data.model_dump(mode="json", by_alias=True, exclude_none=True)
        document.pop("idempotencyKey", None)
        document.update({
            "status": OrderStatus.PENDING,
            "paymentStatus": PaymentStatus.UNPAID,
            "amountPaid": 0.0,
            "balanceDue": order_data.total,
            "statusHistory": [status_entry(OrderStatus.PENDING, "Order created", actor)],
            "paymentStatusHistory": [payment_status_entry(PaymentStatus.UNPAID, "Order created", actor)],
            "payments": [],
            "createdAt": now,
        })
        if user_id:
            document["userId"] = user_id
            # Linked to the customer's profile later
            document["profileUpdated"] = False

        order, created = await self.idempotency.create_once(key, user_id, document)
        if created:
            logger.info(f"New order created with ID: {order.id} for {order.customer_info.email}")
        return Ok(OrderCreation(order=order, created=created))
    
    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    @store_errors_as_result("Get order")
    async def get_order(self, order_id: str, principal: Principal) -> Result[Order]:
        """Get order by ID; owner, staff or admin only"""
        order = await self.repository.get_by_id(order_id)
        if order is None:
            return not_found(f'Order with ID "{order_id}" not found.')
        if not principal.is_authenticated:
            return unauthorized("Authentication is required to view an order.")
        if not policy.can_read_order(order, principal):
            return forbidden("You are not authorized to view this order.")
        return Ok(order)
    
    @store_errors_as_result("Get order history")
    async def get_user_orders(self, principal: Principal, user_id: Optional[str] = None) -> Result[List[Order]]:
        """Get a customer's orders, newest first; admins may pass ``user_id``"""
        if not principal.is_authenticated:
            return unauthorized("Authentication is required to view order history.")
        target_user = user_id or principal.uid
        if not policy.can_view_order_history(principal, target_user):
            return forbidden("You can only view your own order history.")
        return Ok(await self.repository.get_by_user(target_user))
    
    @store_errors_as_result("List orders")
    async def get_all_orders(
        self,
        principal: Principal,
        status: Optional[Union[OrderStatus, str]] = None,
    ) -> Result[OrderListResponse]:
        """Get all orders, optionally filtered by status; admin only"""
        if status is not None and not isinstance(status, OrderStatus):
            try:
                status = OrderStatus(status)
            except ValueError:
                return validation_error(f"Unknown order status '{status}'.")
        if not principal.is_authenticated:
            return unauthorized("Authentication is required to list orders.")
        if not policy.can_list_all_orders(principal):
            return forbidden("Only administrators can view all orders.")

        orders = await self.repository.get_all(status)
        return Ok(OrderListResponse(orders=orders, total=len(orders)))
    
    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    @store_errors_as_result("Update order status")
    async def update_order_status(
        self,
        order_id: str,
        status_data: Union[OrderStatusUpdate, Mapping[str, Any]],
        principal: Principal,
    ) -> Result[StatusChange]:
        """
        Update order status (staff or admin)
        
        Any non-terminal status may move to any status; completed and
        cancelled orders are frozen.
        """
        parsed = parse_payload(OrderStatusUpdate, status_data)
        if isinstance(parsed, Err):
            return parsed
        return await self._update_status(order_id, parsed.value, principal)
    
    @retry_on_stale
    async def _update_status(
        self,
        order_id: str,
        status_data: OrderStatusUpdate,
        principal: Principal,
    ) -> Result[StatusChange]:
        order = await self.repository.get_by_id(order_id)
        if order is None:
            return not_found(f'Order with ID "{order_id}" not found.')
        denied = check_status_update(order, principal)
        if denied:
            return denied

        entry = status_entry(status_data.status, status_data.note, principal.actor_id)
        updated = await self.repository.update(order, {
            "status": status_data.status,
            "statusHistory": ArrayAppend(entry),
        })
        logger.info(f"Order {order_id} status updated: {order.status.value} -> {status_data.status.value}")
        return Ok(StatusChange(order=updated, previous_status=order.status))
    
    @store_errors_as_result("Cancel order")
    async def cancel_order(self, order_id: str, reason: str, principal: Principal) -> Result[StatusChange]:
        """
        Cancel an order
        
        The owner may cancel while the order is pending or approved; an
        admin may cancel anything not yet delivered, picked up or completed.
        """
        if not reason or not reason.strip():
            return validation_error("A cancellation reason is required.")
        return await self._cancel(order_id, reason.strip(), principal)
    
    @retry_on_stale
    async def _cancel(self, order_id: str, reason: str, principal: Principal) -> Result[StatusChange]:
        order = await self.repository.get_by_id(order_id)
        if order is None:
            return not_found(f'Order with ID "{order_id}" not found.')
        denied = check_cancellation(order, principal)
        if denied:
            return denied

        updated = await self.repository.update(order, {
            "status": OrderStatus.CANCELLED,
            "statusHistory": ArrayAppend(cancellation_entry(principal, reason)),
        })
        logger.info(f"Order {order_id} cancelled by {principal.actor_id}. Reason: {reason}")
        return Ok(StatusChange(order=updated, previous_status=order.status))
