"""
Role-based order scoping.

Visibility is a pure function of the caller's role and identity. The same
rule is exposed as a SQLAlchemy clause for queries and as a predicate for
already-loaded orders.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_

from ..models.order import Order, OrderStatus
from ..models.tenant import UserRole


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller resolved from the bearer token."""
    id: str
    tenant_id: str
    role: UserRole
    name: Optional[str] = None


ADMIN_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.TENANT_ADMIN})

STATUS_CHANGE_ROLES = frozenset({
    UserRole.SUPER_ADMIN,
    UserRole.TENANT_ADMIN,
    UserRole.SUPERVISOR,
    UserRole.WAREHOUSE,
    UserRole.DRIVER,
})

BATCH_ROLES = ADMIN_ROLES

CREATOR_CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def order_visibility_clause(user: CurrentUser):
    """Row filter for orders the caller may see."""
    clause = Order.tenant_id == user.tenant_id
    if user.role == UserRole.SALES_REP:
        return and_(clause, Order.created_by_user_id == user.id)
    if user.role == UserRole.DRIVER:
        return and_(clause, Order.driver_id == user.id)
    return clause


def can_view_order(user: CurrentUser, order: Order) -> bool:
    if order.tenant_id != user.tenant_id:
        return False
    if user.role == UserRole.SALES_REP:
        return order.created_by_user_id == user.id
    if user.role == UserRole.DRIVER:
        return order.driver_id == user.id
    return True


def can_change_status(user: CurrentUser) -> bool:
    return user.role in STATUS_CHANGE_ROLES


def can_cancel_as_creator(user: CurrentUser, order: Order) -> bool:
    return order.created_by_user_id == user.id
