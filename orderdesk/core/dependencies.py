from fastapi import Depends, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, sessionmaker
from typing import Optional

from ..config.database import SessionLocal, get_db
from ..config.settings import get_settings
from ..config.logging import get_logger, log_security_event
from ..core.access import CurrentUser
from ..core.exceptions import UnauthorizedError
from ..core.security import verify_token
from ..models.tenant import Tenant, User
from ..services.batch_service import BatchService
from ..services.notification_service import NotificationDispatcher
from ..services.order_service import OrderService
from ..services.status_service import StatusService

logger = get_logger(__name__)
settings = get_settings()
security = HTTPBearer(auto_error=False)


# Authentication dependencies
def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """Resolve the authenticated caller from the bearer token."""
    if credentials is None:
        raise UnauthorizedError()

    payload = verify_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid authentication credentials")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    user = (
        db.query(User)
        .join(Tenant, Tenant.id == User.tenant_id)
        .filter(User.id == user_id, Tenant.is_active.is_(True))
        .first()
    )
    if user is None or not user.is_active:
        log_security_event("AUTH_REJECTED", user_id=user_id, details="Unknown or disabled user")
        raise UnauthorizedError("User not found or disabled")

    if payload.get("tenant_id") and payload["tenant_id"] != user.tenant_id:
        log_security_event("AUTH_REJECTED", user_id=user_id, details="Token tenant mismatch")
        raise UnauthorizedError("Invalid token payload")

    return CurrentUser(id=user.id, tenant_id=user.tenant_id, role=user.role, name=user.name)


# Pagination dependency
class PaginationParams:
    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE,
                              description="Page size"),
    ):
        self.page = page
        self.per_page = per_page


# Service factories
def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_notification_dispatcher(
    session_factory: sessionmaker = Depends(get_session_factory)
) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory)


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_status_service(db: Session = Depends(get_db)) -> StatusService:
    return StatusService(db)


def get_batch_service(db: Session = Depends(get_db)) -> BatchService:
    return BatchService(db)
