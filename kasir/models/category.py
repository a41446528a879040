"""Category model."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from kasir.database import Base, IdType
from kasir.time_utils import utcnow


class Category(Base):
    """Product Category."""

    __tablename__ = 'category'

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
