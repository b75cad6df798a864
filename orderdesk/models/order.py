"""
Order, order line and status history models.
"""
import enum
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, Text,
    Enum, ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from .base import BaseModel, TimestampMixin
from ..utils.date_utils import utc_now


class OrderStatus(str, enum.Enum):
    """Order lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    APPROVED = "approved"
    PICKING = "picking"
    PICKED = "picked"
    LOADED = "loaded"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    PARTIAL = "partial"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Payment state; payments are recorded externally."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Order(BaseModel, TimestampMixin):
    """
    Customer order.

    Created once in ``pending`` by the order service and mutated only
    through status transitions afterwards. ``total_amount`` is taken from
    the caller as submitted.
    """

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),
        Index("ix_orders_tenant_created", "tenant_id", "created_at"),
        Index("ix_orders_tenant_status", "tenant_id", "status"),
    )

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    order_number = Column(String(50), nullable=False)

    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False, index=True)
    sales_rep_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    created_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    driver_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    status = Column(Enum(OrderStatus, values_callable=_enum_values, name="order_status"),
                    default=OrderStatus.PENDING, nullable=False)
    payment_status = Column(Enum(PaymentStatus, values_callable=_enum_values, name="payment_status"),
                            default=PaymentStatus.UNPAID, nullable=False)

    # Financial fields
    subtotal_amount = Column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    discount_amount = Column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    tax_amount = Column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    paid_amount = Column(Numeric(15, 2), default=Decimal("0"), nullable=False)

    notes = Column(Text, nullable=True)
    requested_delivery_date = Column(Date, nullable=True)

    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    # Relationships
    customer = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan",
                         order_by="OrderItem.created_at")
    history = relationship("OrderStatusHistory", back_populates="order",
                           cascade="all, delete-orphan", order_by="OrderStatusHistory.created_at")

    def __repr__(self):
        return f"<Order(number={self.order_number}, status={self.status})>"


class OrderItem(BaseModel):
    """Order line; unit_price is the product price snapshot at order time."""

    __tablename__ = "order_items"

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    unit_price = Column(Numeric(15, 2), nullable=False)
    qty_ordered = Column(Integer, nullable=False)
    # Maintained by fulfillment workflows
    qty_picked = Column(Integer, default=0, nullable=False)
    qty_delivered = Column(Integer, default=0, nullable=False)
    line_total = Column(Numeric(15, 2), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class OrderStatusHistory(BaseModel):
    """Append-only audit trail, one row per transition."""

    __tablename__ = "order_status_history"

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=False)
    changed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    order = relationship("Order", back_populates="history")
