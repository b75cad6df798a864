"""
Order lifecycle state machine.

Every status change goes through ``apply_transition``, which validates
the edge, applies the ledger side effects and appends exactly one history
row. The ``ensure_*`` checks are shared with the batch coordinator and its
preview.
"""
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger, log_order_event, log_security_event
from ..core.access import (
    CREATOR_CANCELLABLE_STATUSES,
    CurrentUser,
    can_cancel_as_creator,
    can_change_status,
    can_view_order,
)
from ..core.exceptions import ForbiddenError, InvalidStatusTransitionError, NotFoundError
from ..models.notification import EventKind
from ..models.order import Order, OrderStatus
from ..repositories.customer_repo import customer_repository
from ..repositories.order_repo import order_repository
from ..repositories.product_repo import product_repository
from ..schemas.order import Ack
from ..utils.date_utils import utc_now
from .notification_service import CUSTOMER, TENANT_ADMINS, enqueue_event

logger = get_logger(__name__)

S = OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.APPROVED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.APPROVED, S.PICKING, S.CANCELLED}),
    S.APPROVED: frozenset({S.PICKING, S.CANCELLED}),
    S.PICKING: frozenset({S.PICKED}),
    S.PICKED: frozenset({S.LOADED}),
    S.LOADED: frozenset({S.DELIVERING}),
    S.DELIVERING: frozenset({S.DELIVERED, S.PARTIAL, S.RETURNED}),
    S.PARTIAL: frozenset({S.DELIVERED, S.RETURNED}),
    S.DELIVERED: frozenset(),
    S.RETURNED: frozenset(),
    S.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

DRIVER_ASSIGNABLE_STATUSES = frozenset({S.PENDING, S.CONFIRMED, S.APPROVED, S.PICKED, S.LOADED})


def is_transition_allowed(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(order: Order, target: OrderStatus) -> None:
    if not is_transition_allowed(order.status, target):
        raise InvalidStatusTransitionError(order.status.value, target.value)


def ensure_cancellable(order: Order) -> None:
    if not is_transition_allowed(order.status, S.CANCELLED):
        raise InvalidStatusTransitionError(
            order.status.value, S.CANCELLED.value,
            message=f"Cannot cancel order with status '{order.status.value}'"
        )


def ensure_driver_assignable(order: Order) -> None:
    if order.status not in DRIVER_ASSIGNABLE_STATUSES:
        raise InvalidStatusTransitionError(
            order.status.value, order.status.value,
            message=f"Cannot assign driver to order with status '{order.status.value}'"
        )


def ensure_sales_rep_assignable(order: Order) -> None:
    if order.status in TERMINAL_STATUSES:
        raise InvalidStatusTransitionError(
            order.status.value, order.status.value,
            message=f"Cannot reassign sales rep for order with status '{order.status.value}'"
        )


def apply_transition(
    db: Session,
    order: Order,
    target: OrderStatus,
    changed_by: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> OrderStatus:
    """
    Move ``order`` to ``target`` inside the caller's transaction.

    Returns the previous status. Cancellation releases reserved stock for
    every line and takes the order total off the customer's debt, both
    floored at zero.
    """
    ensure_transition(order, target)
    now = now or utc_now()
    previous = order.status

    if target == S.CANCELLED:
        # Customer first, then products by id: the same lock order as order creation
        customer_repository.lock_for_tenant(db, order.customer_id, order.tenant_id)
        items = sorted(order_repository.get_items(db, order.id), key=lambda item: item.product_id)
        for item in items:
            product_repository.release(db, item.product_id, item.qty_ordered)
        customer_repository.decrement_debt(db, order.customer_id, order.total_amount)
        order.cancelled_at = now
        order.cancelled_by = changed_by
        order.cancel_reason = notes
    elif target == S.DELIVERED and order.delivered_at is None:
        order.delivered_at = now

    order.status = target
    order_repository.add_history(
        db,
        order.id,
        to_status=target,
        from_status=previous,
        changed_by=changed_by,
        notes=notes if notes else ("Order cancelled" if target == S.CANCELLED else None),
        created_at=now,
    )
    return previous


class StatusService:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def _load_visible_order(self, user: CurrentUser, order_id: str) -> Order:
        order = order_repository.lock_for_tenant(self.db, order_id, user.tenant_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if not can_view_order(user, order):
            log_security_event(
                "ORDER_ACCESS_DENIED", user_id=user.id, tenant_id=user.tenant_id,
                details=f"Order {order_id} is outside the caller's scope"
            )
            raise ForbiddenError("You do not have access to this order")
        return order

    def change_status(self, user: CurrentUser, order_id: str, new_status: OrderStatus,
                      notes: Optional[str] = None) -> Ack:
        """Apply a single lifecycle transition."""
        if new_status == S.CANCELLED:
            return self.cancel_order(user, order_id, notes)

        if not can_change_status(user):
            log_security_event(
                "STATUS_CHANGE_DENIED", user_id=user.id, tenant_id=user.tenant_id,
                details=f"Role {user.role.value} cannot change order status"
            )
            raise ForbiddenError("You are not allowed to change order status")

        with DatabaseTransaction(self.db):
            order = self._load_visible_order(user, order_id)
            previous = apply_transition(self.db, order, new_status, user.id, notes, now=self.clock())
            enqueue_event(
                self.db,
                EventKind.ORDER_STATUS_CHANGED,
                user.tenant_id,
                payload={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "from": previous.value,
                    "to": new_status.value,
                },
                recipients=(TENANT_ADMINS, CUSTOMER),
                order_id=order.id,
            )

        log_order_event("status_changed", order_id, user.tenant_id, user.id,
                        previous=previous.value, status=new_status.value)
        return Ack(message=f"Order status changed to {new_status.value}", order_id=order_id,
                   status=new_status)

    def cancel_order(self, user: CurrentUser, order_id: str, reason: Optional[str] = None) -> Ack:
        """
        Cancel an order.

        Status-changing roles follow the state machine. The order's creator
        may cancel only while it is pending or confirmed.
        """
        with DatabaseTransaction(self.db):
            order = self._load_visible_order(user, order_id)

            if not can_change_status(user):
                if not can_cancel_as_creator(user, order):
                    raise ForbiddenError("You are not allowed to cancel this order")
                if order.status not in CREATOR_CANCELLABLE_STATUSES:
                    raise InvalidStatusTransitionError(
                        order.status.value, S.CANCELLED.value,
                        message=f"Cannot cancel order with status '{order.status.value}'"
                    )
            ensure_cancellable(order)

            previous = apply_transition(self.db, order, S.CANCELLED, user.id, reason, now=self.clock())
            enqueue_event(
                self.db,
                EventKind.ORDER_CANCELLED,
                user.tenant_id,
                payload={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "reason": reason,
                    "total_amount": str(order.total_amount),
                },
                recipients=(TENANT_ADMINS, CUSTOMER),
                order_id=order.id,
            )

        log_order_event("cancelled", order_id, user.tenant_id, user.id, previous=previous.value)
        return Ack(message="Order cancelled", order_id=order_id, status=S.CANCELLED)
