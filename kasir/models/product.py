"""Product model."""
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from kasir.database import Base, IdType
from kasir.time_utils import utcnow


class Product(Base):
    """Product with its on-hand stock and weighted-average unit cost (HPP).

    ``stock`` and ``unit_cost`` are written only by the sale and restock
    services once the product exists; catalog edits leave them alone.
    """

    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
        CheckConstraint('unit_cost >= 0', name='ck_product_unit_cost_non_negative'),
        CheckConstraint('sale_price >= 0', name='ck_product_sale_price_non_negative'),
        CheckConstraint('alert_level >= 0', name='ck_product_alert_level_non_negative'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), ForeignKey('tenant.id'), nullable=False, index=True)
    category_id = Column(IdType, ForeignKey('category.id'), nullable=True)
    name = Column(String, nullable=False)
    image_url = Column(String(255), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    alert_level = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)  # HPP
    sale_price = Column(Numeric(12, 2), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='products')
    category = relationship('Category', foreign_keys=[category_id])

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"

    @property
    def is_low_stock(self):
        return self.stock <= self.alert_level

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'category_id': self.category_id,
            'name': self.name,
            'image_url': self.image_url,
            'stock': self.stock,
            'alert_level': self.alert_level,
            'unit_cost': str(self.unit_cost),
            'sale_price': str(self.sale_price),
            'active': self.active,
        }
