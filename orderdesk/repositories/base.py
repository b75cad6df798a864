from typing import Any, Dict, Generic, Optional, Type, TypeVar
from sqlalchemy.orm import Session, Query
import math

ModelType = TypeVar("ModelType")


def paginate(query: Query, page: int, per_page: int) -> Dict[str, Any]:
    """Apply offset pagination and build the standard metadata dict."""
    total = query.count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    total_pages = math.ceil(total / per_page) if per_page > 0 else 1

    return {
        "items": items,
        "total": total,
        "page": page,
        "pages": total_pages,
        "per_page": per_page,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        """
        Tenant-aware data access with default read helpers.

        Repositories never commit; the calling service owns the transaction.
        """
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        """Get a single record by ID"""
        return db.query(self.model).filter(self.model.id == id).first()

    def lock_for_tenant(self, db: Session, id: Any, tenant_id: str) -> Optional[ModelType]:
        """Get a single record by ID within a tenant, holding a row lock"""
        return (
            db.query(self.model)
            .filter(self.model.id == id, self.model.tenant_id == tenant_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def add(self, db: Session, db_obj: ModelType) -> ModelType:
        """Stage a new record and flush so defaults are populated"""
        db.add(db_obj)
        db.flush()
        return db_obj
