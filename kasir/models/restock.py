"""Restock (stock-in) model."""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from kasir.database import Base, IdType
from kasir.time_utils import utcnow, to_iso


class Restock(Base):
    """Restock - one purchased batch.

    ``purchase_unit_cost`` is the price paid for this batch, never the
    blended average; the before/after snapshot records the deltas applied
    to the product by the same transaction.
    """

    __tablename__ = 'restock'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_restock_quantity_positive'),
        CheckConstraint('purchase_unit_cost > 0', name='ck_restock_cost_positive'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), ForeignKey('tenant.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    quantity = Column(Integer, nullable=False)
    purchase_unit_cost = Column(Numeric(12, 2), nullable=False)
    old_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    old_unit_cost = Column(Numeric(12, 2), nullable=False)
    new_unit_cost = Column(Numeric(12, 2), nullable=False)

    # Relationships
    product = relationship('Product')

    def __repr__(self):
        return f"<Restock(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'product_id': self.product_id,
            'created_at': to_iso(self.created_at),
            'quantity': self.quantity,
            'purchase_unit_cost': str(self.purchase_unit_cost),
            'old_stock': self.old_stock,
            'new_stock': self.new_stock,
            'old_unit_cost': str(self.old_unit_cost),
            'new_unit_cost': str(self.new_unit_cost),
        }
