import enum
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..config.settings import get_settings
from ..models.order import OrderStatus

settings = get_settings()


class BatchOperation(str, enum.Enum):
    STATUS_CHANGE = "status_change"
    ASSIGN_DRIVER = "assign_driver"
    ASSIGN_SALES_REP = "assign_sales_rep"
    CANCEL = "cancel"


class BatchRequestBase(BaseModel):
    order_ids: List[str] = Field(..., min_length=1)

    @field_validator("order_ids")
    @classmethod
    def validate_order_ids(cls, v):
        # Duplicates are collapsed, first occurrence wins
        unique = list(dict.fromkeys(order_id for order_id in v if order_id))
        if not unique:
            raise ValueError("At least one order id is required")
        if len(unique) > settings.BATCH_MAX_ORDERS:
            raise ValueError(f"At most {settings.BATCH_MAX_ORDERS} orders per batch")
        return unique


class BatchStatusRequest(BatchRequestBase):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=2000)
    notify_customers: bool = False


class BatchAssignDriverRequest(BatchRequestBase):
    driver_id: str = Field(..., min_length=1)


class BatchAssignSalesRepRequest(BatchRequestBase):
    sales_rep_id: str = Field(..., min_length=1)


class BatchCancelRequest(BatchRequestBase):
    reason: Optional[str] = Field(None, max_length=2000)
    notify_customers: bool = False


class BatchPreviewRequest(BatchRequestBase):
    operation: BatchOperation
    target_status: Optional[OrderStatus] = None

    @model_validator(mode="after")
    def require_target_status(self):
        if self.operation == BatchOperation.STATUS_CHANGE and self.target_status is None:
            raise ValueError("target_status is required for status_change previews")
        return self


class BatchItemResult(BaseModel):
    order_id: str
    order_number: Optional[str] = None
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    previous_status: Optional[OrderStatus] = None


class BatchResult(BaseModel):
    success: bool = True
    processed: int
    succeeded: int
    failed: int
    results: List[BatchItemResult]


class PreviewItem(BaseModel):
    order_id: str
    order_number: Optional[str] = None
    current_status: Optional[OrderStatus] = None
    customer_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    can_process: bool
    reason: Optional[str] = None


class PreviewResult(BaseModel):
    operation: BatchOperation
    total: int
    can_process: int
    cannot_process: int
    preview: List[PreviewItem]
