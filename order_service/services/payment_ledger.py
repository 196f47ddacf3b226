"""
Payment Ledger - records payments and keeps the balance fields in step.

``amountPaid`` is the running sum of ``payments[].amount`` and
``balanceDue`` is ``max(0, total - amountPaid)``. Recording a payment
never marks an order partial or paid: customer-asserted payments
(cash-app in particular) stay ``pending`` until staff verify them through
``update_payment_status``. The one automatic move is unpaid -> pending on
the first positive payment.
"""
import logging
import math
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from order_service.domain import policy
from order_service.domain.principal import Principal
from order_service.domain.result import Err, Ok, Result, forbidden, not_found, unauthorized, validation_error
from order_service.domain.state_machine import payment_status_entry, utcnow
from order_service.repositories.document_store import ArrayAppend, DocumentStore
from order_service.repositories.order_repository import OrderRepository
from order_service.schemas.order import (
    CashAppDetails,
    Order,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
    PaymentStatusUpdate,
    PaymentTransaction,
)
from order_service.services.guards import parse_payload, retry_on_stale, store_errors_as_result

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class PaymentReceipt:
    payment_id: str
    order: Order
    # True when a repeated cash-app confirmation updated an existing entry
    duplicate: bool = False


def new_payment_id(order: Order) -> str:
    taken = {p.id for p in order.payments}
    while True:
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
        payment_id = f"payment_{int(time.time() * 1000)}_{suffix}"
        if payment_id not in taken:
            return payment_id


def find_cash_app_payment(order: Order, confirmation_id: str) -> Optional[PaymentTransaction]:
    """Existing cash-app entry with the same confirmation id, ignoring case"""
    wanted = confirmation_id.lower()
    for payment in order.payments:
        existing_id = payment.cash_app_confirmation_id
        if payment.method == PaymentMethod.CASH_APP and existing_id and existing_id.lower() == wanted:
            return payment
    return None


class PaymentLedger:
    """Service layer for the payment ledger"""

    def __init__(self, store: DocumentStore):
        self.repository = OrderRepository(store)

    async def _load(self, order_id: str) -> Result[Order]:
        order = await self.repository.get_by_id(order_id)
        if order is None:
            return not_found(f'Order with ID "{order_id}" not found.')
        return Ok(order)

    # ------------------------------------------------------------------
    # Recording payments
    # ------------------------------------------------------------------
    @store_errors_as_result("Record payment")
    async def record_payment(
        self,
        order_id: str,
        payment_data: Union[PaymentCreate, Mapping[str, Any]],
        principal: Principal,
    ) -> Result[PaymentReceipt]:
        """
        Record a payment against an order (owner or admin)
        
        Args:
            order_id: Order ID
            payment_data: Amount, method, date and channel details
            principal: Acting user
        
        Returns:
            Ok(PaymentReceipt) with the generated transaction id
        """
        parsed = parse_payload(PaymentCreate, payment_data)
        if isinstance(parsed, Err):
            return parsed
        if not principal.is_authenticated:
            return unauthorized("Authentication is required to record a payment.")
        return await self._record_payment(order_id, parsed.value, principal)

    @retry_on_stale
    async def _record_payment(self, order_id: str, payment: PaymentCreate, principal: Principal) -> Result[PaymentReceipt]:
        loaded = await self._load(order_id)
        if isinstance(loaded, Err):
            return loaded
        return await self._record_or_refresh(loaded.value, payment, principal)

    async def _record_or_refresh(self, order: Order, payment: PaymentCreate, principal: Principal) -> Result[PaymentReceipt]:
        """Append ``payment``, unless it repeats a cash-app confirmation already on the order"""
        confirmation_id = payment.cash_app_confirmation_id
        if payment.method == PaymentMethod.CASH_APP and confirmation_id:
            existing = find_cash_app_payment(order, confirmation_id)
            if existing is not None:
                return await self._refresh_cash_app_payment(order, existing, confirmation_id, payment.notes, principal)
        return await self._append_payment(order, payment, principal)

    async def _append_payment(self, order: Order, payment: PaymentCreate, principal: Principal) -> Result[PaymentReceipt]:
        if not policy.can_record_payment(order, principal):
            return forbidden("You are not authorized to record a payment for this order.")

        transaction = PaymentTransaction(
            id=new_payment_id(order),
            amount=payment.amount,
            method=payment.method,
            date=payment.date or utcnow(),
            confirmation_id=payment.confirmation_id,
            cash_app_details=payment.cash_app_details,
            card_details=payment.card_details,
            notes=payment.notes,
        )

        amount_paid = order.amount_paid + payment.amount
        balance_due = max(0.0, order.total - amount_paid)
        changes = {
            "payments": ArrayAppend(transaction),
            "amountPaid": amount_paid,
            "balanceDue": balance_due,
        }

        if order.payment_status == PaymentStatus.UNPAID and amount_paid > 0:
            note = (
                f"Payment of {payment.amount:.2f} recorded by customer. "
                f"Awaiting baker verification. New balance: {balance_due:.2f}"
            )
            changes["paymentStatus"] = PaymentStatus.PENDING
            changes["paymentStatusHistory"] = ArrayAppend(
                payment_status_entry(PaymentStatus.PENDING, note, principal.actor_id)
            )

        updated = await self.repository.update(order, changes)
        logger.info(f"Payment recorded for order {order.id}. Payment ID: {transaction.id}")
        return Ok(PaymentReceipt(payment_id=transaction.id, order=updated))

    @store_errors_as_result("Process Cash App payment")
    async def process_cash_app_payment(
        self,
        order_id: str,
        amount: float,
        confirmation_id: str,
        notes: Optional[str] = None,
        principal: Optional[Principal] = None,
    ) -> Result[PaymentReceipt]:
        """
        Record a cash-app payment, collapsing repeated confirmation ids
        
        An ``amount`` of 0 pays the current balance due (the order total
        when no balance is outstanding). A confirmation id already on the
        order, compared case-insensitively, refreshes that entry instead
        of adding a second payment; its amount is left as it was.
        
        There is no implicit caller: internal jobs pass
        ``Principal.system()`` explicitly.
        """
        if not confirmation_id or not confirmation_id.strip():
            return validation_error("A Cash App confirmation ID is required.")
        if not math.isfinite(amount):
            return validation_error("Payment amount must be a finite number.")
        if amount < 0:
            return validation_error("Payment amount cannot be negative.")
        if principal is None or not principal.is_authenticated:
            return unauthorized("Authentication is required to record a payment.")
        return await self._process_cash_app(order_id, amount, confirmation_id.strip(), notes, principal)

    @retry_on_stale
    async def _process_cash_app(
        self,
        order_id: str,
        amount: float,
        confirmation_id: str,
        notes: Optional[str],
        principal: Principal,
    ) -> Result[PaymentReceipt]:
        loaded = await self._load(order_id)
        if isinstance(loaded, Err):
            return loaded
        order = loaded.value
        if not policy.can_read_order(order, principal):
            return forbidden("You are not authorized to view this order.")

        payment_amount = amount
        if payment_amount == 0:
            # A settled balance of 0 falls back to the full total
            payment_amount = order.balance_due or order.total

        now = utcnow()
        payment = PaymentCreate(
            amount=payment_amount,
            method=PaymentMethod.CASH_APP,
            date=now,
            confirmation_id=confirmation_id,
            cash_app_details=CashAppDetails(confirmation_id=confirmation_id, last_updated=now),
            notes=notes,
        )
        return await self._record_or_refresh(order, payment, principal)

    async def _refresh_cash_app_payment(
        self,
        order: Order,
        existing: PaymentTransaction,
        confirmation_id: str,
        notes: Optional[str],
        principal: Principal,
    ) -> Result[PaymentReceipt]:
        """Treat a repeated confirmation as a correction: no new entry, balances untouched"""
        if not policy.can_record_payment(order, principal):
            return forbidden("You are not authorized to record a payment for this order.")

        details = (existing.cash_app_details or CashAppDetails()).model_copy(
            update={"confirmation_id": confirmation_id, "last_updated": utcnow()}
        )
        refreshed = existing.model_copy(update={
            "confirmation_id": confirmation_id,
            "cash_app_details": details,
            "notes": notes or existing.notes,
        })
        payments = [refreshed if p.id == existing.id else p for p in order.payments]
        updated = await self.repository.update(order, {"payments": payments})
        logger.info(
            f"Cash App confirmation {confirmation_id} already recorded on order {order.id}; "
            f"updated payment {existing.id}"
        )
        return Ok(PaymentReceipt(payment_id=existing.id, order=updated, duplicate=True))

    # ------------------------------------------------------------------
    # Staff verification
    # ------------------------------------------------------------------
    @store_errors_as_result("Update payment status")
    async def update_payment_status(
        self,
        order_id: str,
        status_data: Union[PaymentStatusUpdate, Mapping[str, Any]],
        principal: Principal,
    ) -> Result[Order]:
        """Set payment status explicitly (staff, admin or system)"""
        parsed = parse_payload(PaymentStatusUpdate, status_data)
        if isinstance(parsed, Err):
            return parsed
        if not principal.is_authenticated:
            return unauthorized("Authentication is required to update payment status.")
        return await self._update_payment_status(order_id, parsed.value, principal)

    @retry_on_stale
    async def _update_payment_status(
        self,
        order_id: str,
        status_data: PaymentStatusUpdate,
        principal: Principal,
    ) -> Result[Order]:
        loaded = await self._load(order_id)
        if isinstance(loaded, Err):
            return loaded
        order = loaded.value
        if not policy.can_update_payment_status(principal):
            return forbidden("You are not authorized to update payment status.")

        entry = payment_status_entry(status_data.payment_status, status_data.note, principal.actor_id)
        updated = await self.repository.update(order, {
            "paymentStatus": status_data.payment_status,
            "paymentStatusHistory": ArrayAppend(entry),
        })
        logger.info(f"Order {order_id} payment status updated to {status_data.payment_status.value}")
        return Ok(updated)
