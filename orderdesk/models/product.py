"""
Product model: price plus the stock ledger counters.
"""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, ForeignKey
from sqlalchemy.ext.hybrid import hybrid_property

from .base import BaseModel, TimestampMixin


class Product(BaseModel, TimestampMixin):
    __tablename__ = "products"

    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True, index=True)
    price = Column(Numeric(15, 2), nullable=False)

    # On hand
    stock_quantity = Column(Integer, default=0, nullable=False)
    # Committed to open orders
    reserved_quantity = Column(Integer, default=0, nullable=False)
    reorder_point = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    @hybrid_property
    def available_quantity(self):
        return self.stock_quantity - self.reserved_quantity
