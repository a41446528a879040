"""Tenant model - the merchant (profile) owning a catalog and its history."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from kasir.database import Base
from kasir.time_utils import utcnow


class Tenant(Base):
    """Tenant model - one merchant profile, keyed by the upstream user id."""

    __tablename__ = 'tenant'

    id = Column(String(64), primary_key=True)  # Opaque id from the auth layer
    full_name = Column(String(200), nullable=True)
    business_name = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    products = relationship('Product', back_populates='tenant')

    def __repr__(self):
        return f"<Tenant(id='{self.id}', business_name='{self.business_name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'business_name': self.business_name,
            'active': self.active,
        }
