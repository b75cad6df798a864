from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config.logging import get_logger
from ..core.exceptions import NotFoundError
from ..repositories.order_repo import order_repository
from ..repositories.tenant_repo import tenant_repository
from ..utils.date_utils import get_tenant_timezone, start_of_local_month, utc_now

logger = get_logger(__name__)


@dataclass
class PlanLimitResult:
    allowed: bool
    current: int
    max: Optional[int]


class PlanLimitChecker:
    """Monthly order quota per tenant; a null maximum means unlimited."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def can_create_order(self, db: Session, tenant_id: str) -> PlanLimitResult:
        tenant = tenant_repository.get(db, tenant_id)
        if tenant is None or not tenant.is_active:
            raise NotFoundError("Tenant", tenant_id)

        tz = get_tenant_timezone(tenant.timezone)
        current = order_repository.count_created_since(
            db, tenant_id, start_of_local_month(self.clock(), tz)
        )
        maximum = tenant.max_orders_per_month
        allowed = maximum is None or current < maximum
        if not allowed:
            logger.info(f"Tenant {tenant_id} reached monthly order limit ({current}/{maximum})")
        return PlanLimitResult(allowed=allowed, current=current, max=maximum)
