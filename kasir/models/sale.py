"""Sale model."""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from kasir.database import Base, IdType
from kasir.time_utils import utcnow, to_iso


class Sale(Base):
    """Sale (checkout) - append-only, totals captured at execution time."""

    __tablename__ = 'sale'

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), ForeignKey('tenant.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    total_cost = Column(Numeric(12, 2), nullable=False)

    # Relationships
    lines = relationship('SaleLine', back_populates='sale', order_by='SaleLine.id')

    @hybrid_property
    def profit(self):
        """Gross profit: total_amount - total_cost."""
        return self.total_amount - self.total_cost

    def __repr__(self):
        return f"<Sale(id={self.id}, total_amount={self.total_amount})>"

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'created_at': to_iso(self.created_at),
            'total_amount': str(self.total_amount),
            'total_cost': str(self.total_cost),
            'lines': [line.to_dict() for line in self.lines],
        }
