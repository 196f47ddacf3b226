"""
Tests for the payment ledger: recording, cash-app deduplication and
payment status verification.
"""

import asyncio

import pytest

from order_service.domain.principal import Principal
from order_service.domain.result import ErrorKind
from order_service.schemas.order import PaymentMethod, PaymentStatus


def card_payment(amount, **extra):
    return {"amount": amount, "method": "credit-card", "cardDetails": {"last4": "4242", "brand": "visa"}, **extra}


def assert_reconciled(order):
    assert order.amount_paid == pytest.approx(sum(p.amount for p in order.payments))
    assert order.balance_due == pytest.approx(max(0.0, order.total - order.amount_paid))


@pytest.mark.asyncio
async def test_two_payments_settle_balance(ledger, place_order, customer):
    order = await place_order()

    first = await ledger.record_payment(order.id, card_payment(40), customer)
    second = await ledger.record_payment(order.id, card_payment(60), customer)

    final = second.value.order
    assert final.amount_paid == pytest.approx(100)
    assert final.balance_due == pytest.approx(0)
    # Recording never marks an order paid; staff verify that
    assert final.payment_status == PaymentStatus.PENDING
    assert [p.amount for p in final.payments] == [40, 60]
    assert first.value.payment_id != second.value.payment_id
    assert_reconciled(final)


@pytest.mark.asyncio
async def test_first_payment_moves_unpaid_to_pending(ledger, place_order, customer):
    order = await place_order()

    result = await ledger.record_payment(order.id, card_payment(40), customer)

    updated = result.value.order
    assert updated.payment_status == PaymentStatus.PENDING
    assert len(updated.payment_status_history) == 2
    entry = updated.payment_status_history[-1]
    assert entry.note == (
        "Payment of 40.00 recorded by customer. Awaiting baker verification. New balance: 60.00"
    )
    assert entry.updated_by == customer.uid


@pytest.mark.asyncio
async def test_later_payments_do_not_touch_payment_history(ledger, place_order, customer):
    order = await place_order()
    await ledger.record_payment(order.id, card_payment(40), customer)

    result = await ledger.record_payment(order.id, card_payment(10), customer)

    assert len(result.value.order.payment_status_history) == 2


@pytest.mark.asyncio
async def test_payment_id_format(ledger, place_order, customer):
    order = await place_order()

    result = await ledger.record_payment(order.id, card_payment(5), customer)

    assert result.value.payment_id.startswith("payment_")
    assert result.value.order.payments[0].id == result.value.payment_id


@pytest.mark.asyncio
async def test_overpayment_clamps_balance_at_zero(ledger, place_order, customer):
    order = await place_order()

    result = await ledger.record_payment(order.id, card_payment(130), customer)

    assert result.value.order.balance_due == 0
    assert result.value.order.amount_paid == pytest.approx(130)


@pytest.mark.asyncio
async def test_negative_amount_is_recorded_as_refund(ledger, place_order, customer):
    order = await place_order()
    await ledger.record_payment(order.id, card_payment(50), customer)

    result = await ledger.record_payment(order.id, card_payment(-20), customer)

    refunded = result.value.order
    assert refunded.amount_paid == pytest.approx(30)
    assert refunded.balance_due == pytest.approx(70)
    assert_reconciled(refunded)


@pytest.mark.asyncio
async def test_non_owner_and_staff_cannot_record(ledger, place_order, other_customer, baker):
    order = await place_order()

    for principal in (other_customer, baker):
        result = await ledger.record_payment(order.id, card_payment(10), principal)
        assert result.error.kind == ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_admin_records_on_guest_order(ledger, place_order, admin):
    order = await place_order(principal=Principal.guest())

    result = await ledger.record_payment(order.id, card_payment(25), admin)

    assert result.value.order.amount_paid == pytest.approx(25)


@pytest.mark.asyncio
async def test_unauthenticated_caller_cannot_record(ledger, place_order):
    order = await place_order()

    result = await ledger.record_payment(order.id, card_payment(10), Principal.guest())

    assert result.error.kind == ErrorKind.UNAUTHORIZED


@pytest.mark.asyncio
async def test_record_on_missing_order(ledger, customer):
    result = await ledger.record_payment("missing", card_payment(10), customer)

    assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_full_card_data_is_rejected(ledger, place_order, store, customer):
    order = await place_order()
    payload = {
        "amount": 10,
        "method": "credit-card",
        "cardDetails": {"last4": "4242", "number": "4242424242424242"},
    }

    result = await ledger.record_payment(order.id, payload, customer)

    assert result.error.kind == ErrorKind.VALIDATION
    stored = await store.get(order.id)
    assert stored.data["payments"] == []


@pytest.mark.asyncio
async def test_concurrent_payments_are_not_lost(ledger, place_order, customer):
    order = await place_order()

    results = await asyncio.gather(*[
        ledger.record_payment(order.id, card_payment(10), customer) for _ in range(5)
    ])

    assert all(r.ok for r in results)
    final = max((r.value.order for r in results), key=lambda o: o.version)
    assert len(final.payments) == 5
    assert final.amount_paid == pytest.approx(50)
    assert final.balance_due == pytest.approx(50)
    assert len({p.id for p in final.payments}) == 5


# ---------------------------------------------------------------------------
# Cash App
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cash_app_confirmation_is_deduplicated_ignoring_case(ledger, place_order, customer):
    order = await place_order()

    first = await ledger.process_cash_app_payment(order.id, 30, "ABC123", principal=customer)
    second = await ledger.process_cash_app_payment(order.id, 30, "abc123", notes="resent", principal=customer)

    assert not first.value.duplicate
    assert second.value.duplicate
    assert second.value.payment_id == first.value.payment_id
    final = second.value.order
    assert len(final.payments) == 1
    assert final.amount_paid == pytest.approx(30)
    assert final.balance_due == pytest.approx(70)
    assert final.payments[0].notes == "resent"
    assert final.payments[0].cash_app_details.confirmation_id == "abc123"


@pytest.mark.asyncio
async def test_cash_app_zero_amount_pays_balance(ledger, place_order, customer):
    order = await place_order()
    await ledger.record_payment(order.id, card_payment(75), customer)

    result = await ledger.process_cash_app_payment(order.id, 0, "CA-1", principal=customer)

    payment = result.value.order.payments[-1]
    assert payment.method == PaymentMethod.CASH_APP
    assert payment.amount == pytest.approx(25)
    assert result.value.order.balance_due == pytest.approx(0)


@pytest.mark.asyncio
async def test_cash_app_zero_amount_on_settled_order_uses_total(ledger, place_order, customer):
    order = await place_order()
    await ledger.record_payment(order.id, card_payment(100), customer)

    result = await ledger.process_cash_app_payment(order.id, 0, "CA-2", principal=customer)

    assert result.value.order.payments[-1].amount == pytest.approx(100)
    assert_reconciled(result.value.order)


@pytest.mark.asyncio
async def test_cash_app_without_principal_is_unauthorized(ledger, place_order, store):
    order = await place_order()

    result = await ledger.process_cash_app_payment(order.id, 20, "SYS-0")

    assert result.error.kind == ErrorKind.UNAUTHORIZED
    assert (await store.get(order.id)).data["payments"] == []


@pytest.mark.asyncio
async def test_cash_app_by_explicit_system_principal(ledger, place_order):
    order = await place_order()

    result = await ledger.process_cash_app_payment(order.id, 20, "SYS-1", principal=Principal.system())

    updated = result.value.order
    assert updated.payment_status_history[-1].updated_by == "system"


@pytest.mark.asyncio
async def test_cash_app_requires_confirmation_id(ledger, place_order, customer):
    order = await place_order()

    result = await ledger.process_cash_app_payment(order.id, 10, "  ", principal=customer)

    assert result.error.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_cash_app_rejects_negative_amount(ledger, place_order, customer):
    order = await place_order()

    result = await ledger.process_cash_app_payment(order.id, -5, "NEG", principal=customer)

    assert result.error.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_cash_app_on_missing_order(ledger, customer):
    result = await ledger.process_cash_app_payment("missing", 0, "CA-404", principal=customer)

    assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_cash_app_by_stranger_is_forbidden(ledger, place_order, other_customer):
    order = await place_order()

    result = await ledger.process_cash_app_payment(order.id, 10, "X1", principal=other_customer)

    assert result.error.kind == ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_recorded_cash_app_confirmation_is_deduplicated(ledger, place_order, customer):
    order = await place_order()

    first = await ledger.record_payment(
        order.id, {"amount": 30, "method": "cash-app", "confirmationId": "ABC123"}, customer
    )
    second = await ledger.record_payment(
        order.id, {"amount": 30, "method": "cash-app", "confirmationId": "abc123"}, customer
    )

    assert second.value.duplicate
    assert second.value.payment_id == first.value.payment_id
    final = second.value.order
    assert len(final.payments) == 1
    assert final.payments[0].confirmation_id == "abc123"
    assert final.amount_paid == pytest.approx(30)
    assert final.balance_due == pytest.approx(70)


@pytest.mark.asyncio
async def test_recorded_cash_app_details_match_processed_confirmation(ledger, place_order, customer):
    order = await place_order()
    await ledger.process_cash_app_payment(order.id, 30, "XYZ9", principal=customer)

    result = await ledger.record_payment(
        order.id,
        {"amount": 30, "method": "cash-app", "cashAppDetails": {"confirmationId": "xyz9"}},
        customer,
    )

    assert result.value.duplicate
    assert len(result.value.order.payments) == 1
    assert result.value.order.amount_paid == pytest.approx(30)


@pytest.mark.asyncio
async def test_same_confirmation_on_other_method_is_not_deduplicated(ledger, place_order, customer):
    order = await place_order()
    await ledger.record_payment(order.id, {"amount": 10, "method": "cash", "confirmationId": "R1"}, customer)

    result = await ledger.record_payment(order.id, {"amount": 10, "method": "cash", "confirmationId": "R1"}, customer)

    assert not result.value.duplicate
    assert len(result.value.order.payments) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
async def test_non_finite_amount_is_rejected(ledger, place_order, store, customer, amount):
    order = await place_order()

    recorded = await ledger.record_payment(order.id, {"amount": amount, "method": "cash"}, customer)
    cash_app = await ledger.process_cash_app_payment(order.id, amount, "NAN-1", principal=customer)

    assert recorded.error.kind == ErrorKind.VALIDATION
    assert cash_app.error.kind == ErrorKind.VALIDATION
    stored = await store.get(order.id)
    assert stored.data["payments"] == []
    assert stored.data["amountPaid"] == 0


@pytest.mark.asyncio
async def test_non_finite_order_total_is_rejected(order_service, order_payload, store, customer):
    result = await order_service.create_order({**order_payload, "total": float("nan")}, customer)

    assert result.error.kind == ErrorKind.VALIDATION
    assert len(store) == 0


# ---------------------------------------------------------------------------
# Payment status verification
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_staff_marks_order_paid(ledger, place_order, customer, baker):
    order = await place_order()
    await ledger.record_payment(order.id, card_payment(100), customer)

    result = await ledger.update_payment_status(order.id, {"paymentStatus": "paid"}, baker)

    updated = result.value
    assert updated.payment_status == PaymentStatus.PAID
    last = updated.payment_status_history[-1]
    assert (last.note, last.updated_by) == ("Payment status changed to paid", baker.uid)


@pytest.mark.asyncio
async def test_customer_cannot_update_payment_status(ledger, place_order, customer):
    order = await place_order()

    result = await ledger.update_payment_status(order.id, {"paymentStatus": "paid"}, customer)

    assert result.error.kind == ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_update_payment_status_rejects_unknown_value(ledger, place_order, admin):
    order = await place_order()

    result = await ledger.update_payment_status(order.id, {"paymentStatus": "settled"}, admin)

    assert result.error.kind == ErrorKind.VALIDATION
