"""
Human-readable order numbers: {prefix}{daily sequence:02d}{HHMM}.

The sequence counts the tenant's orders created since local midnight, so
two orders created in the same minute may collide. The number is a
secondary identifier; the primary key is the order id.
"""
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config.settings import get_settings
from ..models.tenant import Tenant
from ..repositories.order_repo import order_repository
from ..utils.date_utils import format_hhmm, get_tenant_timezone, start_of_local_day, utc_now

settings = get_settings()


class OrderNumberGenerator:
    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def generate(self, db: Session, tenant: Tenant, now: Optional[datetime] = None) -> str:
        now = now or self.clock()
        tz = get_tenant_timezone(tenant.timezone)
        prefix = tenant.order_number_prefix
        if prefix is None:
            prefix = settings.DEFAULT_ORDER_NUMBER_PREFIX

        created_today = order_repository.count_created_since(
            db, tenant.id, start_of_local_day(now, tz)
        )
        return f"{prefix}{created_today + 1:02d}{format_hhmm(now, tz)}"
