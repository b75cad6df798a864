from typing import Optional

from sqlalchemy.orm import Session

from .base import CRUDBase
from ..models.tenant import Tenant, User, UserRole


class TenantRepository(CRUDBase[Tenant]):
    def __init__(self):
        super().__init__(Tenant)


class UserRepository(CRUDBase[User]):
    def __init__(self):
        super().__init__(User)

    def get_active_with_role(self, db: Session, user_id: str, tenant_id: str,
                             role: UserRole) -> Optional[User]:
        """Active tenant user holding the given role"""
        return (
            db.query(User)
            .filter(
                User.id == user_id,
                User.tenant_id == tenant_id,
                User.role == role,
                User.is_active.is_(True),
            )
            .first()
        )


tenant_repository = TenantRepository()
user_repository = UserRepository()
