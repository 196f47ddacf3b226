"""
Shared fixtures: in-memory store, services, principals and order payloads.
"""

import pytest

from order_service.domain.principal import Principal, Role
from order_service.repositories.memory_store import InMemoryDocumentStore
from order_service.services.order_service import OrderService
from order_service.services.payment_ledger import PaymentLedger


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def order_service(store):
    return OrderService(store)


@pytest.fixture
def ledger(store):
    return PaymentLedger(store)


@pytest.fixture
def customer():
    return Principal(uid="customer-1", role=Role.CUSTOMER)


@pytest.fixture
def other_customer():
    return Principal(uid="customer-2", role=Role.CUSTOMER)


@pytest.fixture
def baker():
    return Principal(uid="baker-1", role=Role.STAFF)


@pytest.fixture
def admin():
    return Principal(uid="admin-1", role=Role.ADMIN)


@pytest.fixture
def order_payload():
    """A pickup order for one custom cake, total 100."""
    return {
        "items": [
            {
                "cakeId": "cake-choc",
                "name": "Chocolate Layer Cake",
                "price": 92.0,
                "quantity": 1,
                "customizations": {
                    "size": "8 inch",
                    "flavors": ["chocolate"],
                    "specialInstructions": "Happy Birthday Sam",
                },
            }
        ],
        "subtotal": 92.0,
        "tax": 8.0,
        "total": 100.0,
        "deliveryMethod": "pickup",
        "customerInfo": {
            "name": "Jordan Lee",
            "email": "jordan@example.com",
            "phone": "555-0100",
        },
        "pickupInfo": {
            "pickupDate": "2026-11-02T15:00:00Z",
            "pickupTime": "3:00 PM",
        },
        "isCustomOrder": True,
    }


@pytest.fixture
def place_order(order_service, order_payload, customer):
    """Create an order and return it; keyword overrides patch the payload."""
    async def _place(principal=customer, **overrides):
        result = await order_service.create_order({**order_payload, **overrides}, principal)
        assert result.ok, result
        return result.value.order
    return _place


@pytest.fixture
def move_to(order_service, baker):
    """Move an order to a status as staff."""
    async def _move(order_id, status):
        result = await order_service.update_order_status(order_id, {"status": status}, baker)
        assert result.ok, result
        return result.value.order
    return _move
