from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from .base import CRUDBase, paginate
from ..core.access import CurrentUser, order_visibility_clause
from ..models.order import Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentStatus


class OrderRepository(CRUDBase[Order]):
    def __init__(self):
        super().__init__(Order)

    def get_with_details(self, db: Session, order_id: str, tenant_id: str) -> Optional[Order]:
        """Get an order with its items and history eagerly loaded"""
        return (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.history))
            .filter(Order.id == order_id, Order.tenant_id == tenant_id)
            .first()
        )

    def count_created_since(self, db: Session, tenant_id: str, since: datetime,
                            until: Optional[datetime] = None) -> int:
        """Count tenant orders with created_at in [since, until)"""
        query = db.query(Order).filter(Order.tenant_id == tenant_id, Order.created_at >= since)
        if until is not None:
            query = query.filter(Order.created_at < until)
        return query.count()

    def add_history(
        self,
        db: Session,
        order_id: str,
        to_status: OrderStatus,
        changed_by: Optional[str],
        from_status: Optional[OrderStatus] = None,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> OrderStatusHistory:
        entry = OrderStatusHistory(
            order_id=order_id,
            from_status=from_status.value if from_status is not None else None,
            to_status=to_status.value,
            changed_by=changed_by,
            notes=notes,
        )
        if created_at is not None:
            entry.created_at = created_at
        db.add(entry)
        return entry

    def list_orders(
        self,
        db: Session,
        user: CurrentUser,
        *,
        page: int = 1,
        per_page: int = 20,
        statuses: Optional[List[OrderStatus]] = None,
        payment_status: Optional[PaymentStatus] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Role-scoped order listing, newest first.

        ``end_date`` is inclusive of the whole day.
        """
        query = db.query(Order).filter(order_visibility_clause(user))

        if statuses:
            query = query.filter(Order.status.in_(statuses))
        if payment_status:
            query = query.filter(Order.payment_status == payment_status)
        if customer_id:
            query = query.filter(Order.customer_id == customer_id)
        if search:
            query = query.filter(Order.order_number.ilike(f"%{search}%"))
        if start_date:
            query = query.filter(Order.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Order.created_at < datetime.combine(end_date + timedelta(days=1), time.min))

        query = query.order_by(Order.created_at.desc(), Order.order_number.desc())
        return paginate(query, page, per_page)

    def get_items(self, db: Session, order_id: str) -> List[OrderItem]:
        return db.query(OrderItem).filter(OrderItem.order_id == order_id).all()


order_repository = OrderRepository()
