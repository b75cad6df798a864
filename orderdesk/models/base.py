"""
Base SQLAlchemy model with common fields and utilities.
"""
import uuid

from sqlalchemy import Column, DateTime, String

from ..config.database import Base
from ..utils.date_utils import utc_now


def generate_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin for timestamp fields (naive UTC)."""
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class BaseModel(Base):
    """
    Abstract base model with common fields and methods for all models.
    """
    __abstract__ = True

    # UUID primary key, also used for external references
    id = Column(String(36), primary_key=True, default=generate_uuid)

    def __repr__(self):
        return f"<{self.__class__.__name__}(id={self.id})>"
