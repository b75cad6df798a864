"""
Notification outbox.
Rows are written in the same transaction as the order mutation and
dispatched after commit.
"""
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum, ForeignKey, Index

from .base import BaseModel, TimestampMixin


class EventKind(str, enum.Enum):
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    ORDER_CANCELLED = "order.cancelled"
    STOCK_LOW = "stock.low"
    BATCH_STATUS_CHANGED = "batch.status_changed"
    BATCH_CANCELLED = "batch.cancelled"


class EventStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboundEvent(BaseModel, TimestampMixin):
    __tablename__ = "notification_outbox"
    __table_args__ = (
        Index("ix_outbox_status_created", "status", "created_at"),
    )

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True)
    kind = Column(String(50), nullable=False)
    # e.g. ["tenant_admins", "customer"]
    recipients = Column(JSON, nullable=False, default=list)
    payload = Column(JSON, nullable=False, default=dict)

    status = Column(Enum(EventStatus, values_callable=lambda e: [m.value for m in e],
                         name="outbox_status"),
                    default=EventStatus.PENDING, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    dispatched_at = Column(DateTime, nullable=True)
