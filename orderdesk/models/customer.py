"""
Customer and customer tier models.
Only the fields the ordering core reads or mutates are mapped here.
"""
from decimal import Decimal

from sqlalchemy import Column, String, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel, TimestampMixin


class CustomerTier(BaseModel, TimestampMixin):
    """
    Named credit/ordering policy attached to customers.
    Evaluated once per order, at creation time.
    """

    __tablename__ = "customer_tiers"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    credit_allowed = Column(Boolean, default=True, nullable=False)
    credit_limit = Column(Numeric(15, 2), nullable=True)
    max_order_amount = Column(Numeric(15, 2), nullable=True)

    customers = relationship("Customer", back_populates="tier")


class Customer(BaseModel, TimestampMixin):
    """Customer placing orders through sales reps or admins."""

    __tablename__ = "customers"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=True, index=True)

    # Sum of totals of non-cancelled orders
    debt_balance = Column(Numeric(15, 2), default=Decimal("0"), nullable=False)
    # Prepaid funds
    credit_balance = Column(Numeric(15, 2), default=Decimal("0"), nullable=False)

    tier_id = Column(String(36), ForeignKey("customer_tiers.id"), nullable=True)
    created_by_user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    tier = relationship("CustomerTier", back_populates="customers")
    orders = relationship("Order", back_populates="customer")
