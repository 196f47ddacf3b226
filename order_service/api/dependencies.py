"""
Request-scoped dependencies: store, services, publisher and principal
"""
from typing import NoReturn, Optional, TypeVar

from fastapi import Depends, Header, HTTPException, Request, status

from order_service.domain.principal import Principal, Role
from order_service.domain.result import Err, ErrorKind, OrderError, Result
from order_service.publishers.event_publisher import EventPublisher
from order_service.repositories.document_store import DocumentStore
from order_service.services.order_service import OrderService
from order_service.services.payment_ledger import PaymentLedger

T = TypeVar("T")

_STATUS_CODES = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.DEPENDENCY: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Roles a caller may present; "system" is reserved for internal calls
_CALLER_ROLES = {Role.CUSTOMER.value, Role.STAFF.value, Role.ADMIN.value}


def get_store(request: Request) -> DocumentStore:
    """The document store opened at startup"""
    return request.app.state.store


def get_order_service(store: DocumentStore = Depends(get_store)) -> OrderService:
    """Dependency to get OrderService instance"""
    return OrderService(store)


def get_payment_ledger(store: DocumentStore = Depends(get_store)) -> PaymentLedger:
    """Dependency to get PaymentLedger instance"""
    return PaymentLedger(store)


def get_event_publisher() -> EventPublisher:
    return EventPublisher()


def get_principal(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Principal:
    """
    Principal asserted by the authenticating gateway
    
    Requests without ``X-User-Id`` act as a guest.
    """
    if not x_user_id:
        return Principal.guest()
    role = (x_user_role or Role.CUSTOMER.value).strip().lower()
    if role not in _CALLER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role '{x_user_role}'"
        )
    return Principal(uid=x_user_id, role=Role(role))


def raise_for_error(error: OrderError) -> NoReturn:
    raise HTTPException(status_code=_STATUS_CODES[error.kind], detail=error.message)


def unwrap(result: Result[T]) -> T:
    """Value of an ``Ok`` result; ``Err`` becomes the matching HTTP error"""
    if isinstance(result, Err):
        raise_for_error(result.error)
    return result.value
