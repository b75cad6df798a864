from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from ..models.order import OrderStatus, PaymentStatus


class OrderItemCreate(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    # Price the client was shown; checked against the current product price
    unit_price: Decimal = Field(..., ge=0)


class OrderCreate(BaseModel):
    customer_id: str = Field(..., min_length=1)
    sales_rep_id: Optional[str] = None
    items: List[OrderItemCreate] = Field(..., min_length=1)
    subtotal_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    tax_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=2000)
    requested_delivery_date: Optional[date] = None


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    unit_price: Decimal
    qty_ordered: int
    qty_picked: int
    qty_delivered: int
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class StatusHistoryResponse(BaseModel):
    id: str
    from_status: Optional[str]
    to_status: str
    changed_by: Optional[str]
    notes: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    sales_rep_id: Optional[str]
    created_by_user_id: str
    driver_id: Optional[str]
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    notes: Optional[str]
    requested_delivery_date: Optional[date]
    created_at: datetime
    updated_at: Optional[datetime]
    delivered_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancelled_by: Optional[str]
    cancel_reason: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class OrderDetail(OrderResponse):
    items: List[OrderItemResponse] = []
    history: List[StatusHistoryResponse] = []


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    pages: int
    per_page: int
    has_next: bool
    has_prev: bool


class StatusChangeRequest(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=2000)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class Ack(BaseModel):
    success: bool = True
    message: str
    order_id: str
    status: OrderStatus


class OrderListFilter(BaseModel):
    """Query filters for order listing; ``status`` accepts a comma-separated list."""
    status: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    customer_id: Optional[str] = None
    search: Optional[str] = Field(None, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("status")
    @classmethod
    def validate_statuses(cls, v):
        if v is None or not v.strip():
            return None
        allowed = {s.value for s in OrderStatus}
        values = [part.strip() for part in v.split(",") if part.strip()]
        unknown = [part for part in values if part not in allowed]
        if unknown:
            raise ValueError(f"Unknown status: {', '.join(unknown)}")
        return ",".join(values)

    def status_list(self) -> List[OrderStatus]:
        if not self.status:
            return []
        return [OrderStatus(part) for part in self.status.split(",")]
