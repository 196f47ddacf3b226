"""
Authorization policy: who may read or mutate an order
"""
from typing import Optional

from order_service.domain.principal import Principal, Role
from order_service.schemas.order import Order


def is_owner(order: Order, principal: Principal) -> bool:
    # Guest orders have no owner
    return bool(order.user_id) and order.user_id == principal.uid


def is_staff(principal: Principal) -> bool:
    return principal.role == Role.STAFF


def is_admin(principal: Principal) -> bool:
    return principal.role == Role.ADMIN


def is_system(principal: Principal) -> bool:
    return principal.role == Role.SYSTEM


def can_read_order(order: Order, principal: Principal) -> bool:
    return is_owner(order, principal) or is_staff(principal) or is_admin(principal) or is_system(principal)


def can_view_order_history(principal: Principal, user_id: Optional[str]) -> bool:
    """Customers see their own history; admins may look up anyone's"""
    if not principal.is_authenticated:
        return False
    return user_id is None or user_id == principal.uid or is_admin(principal)


def can_list_all_orders(principal: Principal) -> bool:
    return is_admin(principal)


def can_update_status(principal: Principal) -> bool:
    return is_staff(principal) or is_admin(principal)


def can_record_payment(order: Order, principal: Principal) -> bool:
    return is_owner(order, principal) or is_admin(principal) or is_system(principal)


def can_update_payment_status(principal: Principal) -> bool:
    return is_staff(principal) or is_admin(principal) or is_system(principal)
