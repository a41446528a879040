"""Sale Line model."""
from sqlalchemy import Column, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from kasir.database import Base, IdType


class SaleLine(Base):
    """Sale Line - price and cost as they were when the sale ran."""

    __tablename__ = 'sale_line'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_sale_line_quantity_positive'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    sale_id = Column(IdType, ForeignKey('sale.id'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_sale_price = Column(Numeric(12, 2), nullable=False)
    unit_cost = Column(Numeric(12, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='lines')
    product = relationship('Product')

    @property
    def line_amount(self):
        return self.quantity * self.unit_sale_price

    @property
    def line_cost(self):
        return self.quantity * self.unit_cost

    def __repr__(self):
        return f"<SaleLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit_sale_price': str(self.unit_sale_price),
            'unit_cost': str(self.unit_cost),
        }
