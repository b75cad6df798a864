"""
Tenant and staff user models.
Every other entity is scoped to a tenant.
"""
import enum

from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, Enum
from sqlalchemy.orm import relationship

from .base import BaseModel, TimestampMixin
from ..config.settings import get_settings

settings = get_settings()


class UserRole(str, enum.Enum):
    """Staff roles within a tenant."""
    SUPER_ADMIN = "super_admin"
    TENANT_ADMIN = "tenant_admin"
    SUPERVISOR = "supervisor"
    SALES_REP = "sales_rep"
    WAREHOUSE = "warehouse"
    DRIVER = "driver"


class Tenant(BaseModel, TimestampMixin):
    """An isolated customer organization."""

    __tablename__ = "tenants"

    name = Column(String(255), nullable=False)
    order_number_prefix = Column(String(20), default=settings.DEFAULT_ORDER_NUMBER_PREFIX, nullable=True)
    timezone = Column(String(50), default=settings.DEFAULT_TIMEZONE, nullable=True)
    currency = Column(String(10), default="UZS", nullable=False)
    # None means the plan has no monthly cap
    max_orders_per_month = Column(Integer, default=settings.DEFAULT_MAX_ORDERS_PER_MONTH, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    users = relationship("User", back_populates="tenant")


class User(BaseModel, TimestampMixin):
    """Staff member acting on orders."""

    __tablename__ = "users"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e], name="user_role"),
                  nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    tenant = relationship("Tenant", back_populates="users")
