"""
Tests for idempotent order creation.
"""

import asyncio
import re

import pytest

from order_service.domain.principal import Principal
from order_service.domain.result import ErrorKind
from order_service.schemas.order import OrderStatus, PaymentStatus
from order_service.services.idempotency import generate_idempotency_key


@pytest.mark.asyncio
async def test_same_key_twice_returns_same_order(order_service, store, order_payload, customer):
    """Sequential retries with one key yield one document."""
    payload = {**order_payload, "idempotencyKey": "k1"}

    first = await order_service.create_order(payload, customer)
    second = await order_service.create_order(payload, customer)

    assert first.value.created is True
    assert second.value.created is False
    assert first.value.order.id == second.value.order.id
    assert len(store) == 1


@pytest.mark.asyncio
async def test_concurrent_duplicates_create_one_order(order_service, store, order_payload, customer):
    """Requests racing past the existence check collapse on the unique key."""
    payload = {**order_payload, "idempotencyKey": "race-key"}

    results = await asyncio.gather(*(order_service.create_order(payload, customer) for _ in range(5)))

    assert all(r.ok for r in results)
    assert len({r.value.order.id for r in results}) == 1
    assert sum(r.value.created for r in results) == 1
    assert len(store) == 1


@pytest.mark.asyncio
async def test_missing_key_is_generated(order_service, store, order_payload, customer):
    first = await order_service.create_order(order_payload, customer)
    second = await order_service.create_order(order_payload, customer)

    # Without a client key a retry cannot be recognised
    assert first.value.order.id != second.value.order.id
    assert len(store) == 2
    assert first.value.order.idempotency_key.startswith("order_")
    assert first.value.order.idempotency_key != second.value.order.idempotency_key


def test_generated_key_format():
    assert re.fullmatch(r"order_\d+_[a-z0-9]{13}", generate_idempotency_key())


@pytest.mark.asyncio
async def test_key_only_match_is_returned_across_users(order_service, order_payload, customer):
    """A key used by a guest order still resolves when a signed-in retry carries it."""
    payload = {**order_payload, "idempotencyKey": "shared-key"}

    guest = await order_service.create_order(payload, Principal.guest())
    signed_in = await order_service.create_order(payload, customer)

    assert signed_in.value.created is False
    assert signed_in.value.order.id == guest.value.order.id


@pytest.mark.asyncio
async def test_new_order_has_initialized_ledger_and_history(place_order, customer):
    order = await place_order(idempotencyKey="init-key")

    assert order.user_id == customer.uid
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.UNPAID
    assert order.amount_paid == 0
    assert order.balance_due == 100.0
    assert order.payments == []
    assert order.profile_updated is False
    assert order.idempotency_key == "init-key"
    assert [(e.status, e.note, e.updated_by) for e in order.status_history] == [
        (OrderStatus.PENDING, "Order created", customer.uid)
    ]
    assert [(e.status, e.note) for e in order.payment_status_history] == [
        (PaymentStatus.UNPAID, "Order created")
    ]


@pytest.mark.asyncio
async def test_guest_order_has_no_owner(place_order):
    order = await place_order(principal=Principal.guest())

    assert order.user_id is None
    assert order.profile_updated is None
    assert order.status_history[0].updated_by == "system"


@pytest.mark.asyncio
async def test_invalid_payload_rejected_before_store(order_service, store, order_payload, customer):
    payload = {k: v for k, v in order_payload.items() if k != "customerInfo"}

    result = await order_service.create_order(payload, customer)

    assert result.error.kind == ErrorKind.VALIDATION
    assert "customerInfo" in result.error.message
    assert len(store) == 0


@pytest.mark.asyncio
async def test_delivery_order_requires_delivery_info(order_service, store, order_payload, customer):
    payload = {**order_payload, "deliveryMethod": "delivery"}

    result = await order_service.create_order(payload, customer)

    assert result.error.kind == ErrorKind.VALIDATION
    assert len(store) == 0


@pytest.mark.asyncio
async def test_unknown_fields_rejected(order_service, order_payload, customer):
    result = await order_service.create_order({**order_payload, "status": "completed"}, customer)

    assert result.error.kind == ErrorKind.VALIDATION
