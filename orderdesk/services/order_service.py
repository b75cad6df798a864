"""
Order creation and retrieval.

Creation is one atomic unit: customer and product rows are locked, the
credit policy and stock checks run, and the order, its lines, the first
history row, the reservations and the debt increment are written
together. Any failure rolls the whole unit back.
"""
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..config.database import DatabaseTransaction
from ..config.logging import get_logger, log_order_event, log_performance, log_security_event
from ..config.settings import get_settings
from ..core.access import CurrentUser, can_view_order
from ..core.exceptions import (
    BadRequestError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
)
from ..models.notification import EventKind
from ..models.order import Order, OrderItem, OrderStatus, PaymentStatus
from ..models.tenant import UserRole
from ..repositories.customer_repo import customer_repository
from ..repositories.order_repo import order_repository
from ..repositories.product_repo import product_repository
from ..repositories.tenant_repo import tenant_repository, user_repository
from ..schemas.order import OrderCreate, OrderListFilter
from ..utils.date_utils import utc_now
from .credit_policy import evaluate_credit
from .notification_service import CUSTOMER, TENANT_ADMINS, enqueue_event
from .order_number import OrderNumberGenerator
from .plan_limits import PlanLimitChecker

logger = get_logger(__name__)
settings = get_settings()


class OrderService:
    def __init__(
        self,
        db: Session,
        plan_limits: Optional[PlanLimitChecker] = None,
        number_generator: Optional[OrderNumberGenerator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.clock = clock
        self.plan_limits = plan_limits or PlanLimitChecker(clock=clock)
        self.number_generator = number_generator or OrderNumberGenerator(clock=clock)

    def _check_plan_limit(self, tenant_id: str) -> None:
        try:
            limit = self.plan_limits.can_create_order(self.db, tenant_id)
        finally:
            # The quota read is not part of the order's unit of work
            self.db.rollback()
        if not limit.allowed:
            raise LimitExceededError(limit.current, limit.max)

    def _resolve_sales_rep(self, user: CurrentUser, requested_id: Optional[str]) -> Optional[str]:
        if user.role == UserRole.SALES_REP:
            return user.id
        if not requested_id:
            return None
        rep = user_repository.get_active_with_role(self.db, requested_id, user.tenant_id, UserRole.SALES_REP)
        if rep is None:
            raise BadRequestError("Invalid sales rep", field="sales_rep_id", error_code="INVALID_SALES_REP")
        return rep.id

    @log_performance("orderdesk.performance")
    def create_order(self, user: CurrentUser, data: OrderCreate) -> Order:
        """
        Create an order in ``pending``.

        Raises LimitExceededError, NotFoundError, ForbiddenError, the
        credit policy errors, InsufficientStockError or PriceChangedError.
        """
        self._check_plan_limit(user.tenant_id)

        db = self.db
        total = Decimal(data.total_amount)

        with DatabaseTransaction(db):
            tenant = tenant_repository.get(db, user.tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant", user.tenant_id)

            customer = customer_repository.lock_for_tenant(db, data.customer_id, user.tenant_id)
            if customer is None:
                raise NotFoundError("Customer", data.customer_id)

            if user.role == UserRole.SALES_REP and customer.created_by_user_id != user.id:
                log_security_event(
                    "ORDER_FOR_FOREIGN_CUSTOMER", user_id=user.id, tenant_id=user.tenant_id,
                    details=f"Customer {customer.id} was not created by this sales rep"
                )
                raise ForbiddenError("You can only create orders for your own customers")

            evaluate_credit(customer_repository.get_tier(db, customer), customer, total)

            sales_rep_id = self._resolve_sales_rep(user, data.sales_rep_id)

            # Lines for the same product are checked against their combined quantity
            requested: Dict[str, int] = OrderedDict()
            for line in data.items:
                requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

            # Lock in id order so concurrent orders never wait on each other crosswise
            for product_id in sorted(requested):
                quoted = next(line.unit_price for line in data.items if line.product_id == product_id)
                product = product_repository.lock_and_check(
                    db, product_id, user.tenant_id, requested[product_id], quoted
                )
                for line in data.items:
                    if line.product_id == product_id:
                        product_repository.check_price(product, line.unit_price)

            now = self.clock()
            order_number = self.number_generator.generate(db, tenant, now=now)

            order = Order(
                tenant_id=user.tenant_id,
                order_number=order_number,
                customer_id=customer.id,
                sales_rep_id=sales_rep_id,
                created_by_user_id=user.id,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.UNPAID,
                subtotal_amount=data.subtotal_amount,
                discount_amount=data.discount_amount,
                tax_amount=data.tax_amount,
                total_amount=total,
                paid_amount=Decimal("0"),
                notes=data.notes,
                requested_delivery_date=data.requested_delivery_date,
                created_at=now,
                updated_at=now,
            )
            order_repository.add(db, order)

            for line in data.items:
                db.add(OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    unit_price=line.unit_price,
                    qty_ordered=line.quantity,
                    qty_picked=0,
                    qty_delivered=0,
                    line_total=line.unit_price * line.quantity,
                    created_at=now,
                ))

            order_repository.add_history(
                db, order.id, to_status=OrderStatus.PENDING, changed_by=user.id,
                notes="Order created", created_at=now,
            )

            for product_id, quantity in requested.items():
                product_repository.reserve(db, product_id, quantity)
            customer_repository.increment_debt(db, customer.id, total)

            enqueue_event(
                db,
                EventKind.ORDER_CREATED,
                user.tenant_id,
                payload={
                    "order_id": order.id,
                    "order_number": order_number,
                    "customer_id": customer.id,
                    "customer_name": customer.name,
                    "total_amount": str(total),
                    "item_count": len(data.items),
                },
                recipients=(TENANT_ADMINS, CUSTOMER),
                order_id=order.id,
            )

            low_stock = product_repository.get_low_stock(db, list(requested), user.tenant_id)
            if low_stock:
                enqueue_event(
                    db,
                    EventKind.STOCK_LOW,
                    user.tenant_id,
                    payload={
                        "products": [
                            {
                                "product_id": product.id,
                                "name": product.name,
                                "sku": product.sku,
                                "available": product.available_quantity,
                                "reorder_point": product.reorder_point,
                            }
                            for product in low_stock
                        ]
                    },
                    recipients=(TENANT_ADMINS,),
                )

        db.refresh(order)
        log_order_event("created", order.id, user.tenant_id, user.id,
                        number=order.order_number, total=str(order.total_amount))
        return order

    def get_order(self, user: CurrentUser, order_id: str) -> Order:
        """Get an order with items and history, subject to role scoping"""
        order = order_repository.get_with_details(self.db, order_id, user.tenant_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        if not can_view_order(user, order):
            log_security_event(
                "ORDER_ACCESS_DENIED", user_id=user.id, tenant_id=user.tenant_id,
                details=f"Order {order_id} is outside the caller's scope"
            )
            raise ForbiddenError("You do not have access to this order")
        return order

    def list_orders(
        self,
        user: CurrentUser,
        filters: Optional[OrderListFilter] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> Dict[str, Any]:
        filters = filters or OrderListFilter()
        per_page = min(per_page or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        return order_repository.list_orders(
            self.db,
            user,
            page=page,
            per_page=per_page,
            statuses=filters.status_list(),
            payment_status=filters.payment_status,
            customer_id=filters.customer_id,
            search=filters.search,
            start_date=filters.start_date,
            end_date=filters.end_date,
        )
