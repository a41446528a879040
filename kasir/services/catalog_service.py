"""
Catalog service - product management and read paths (tenant-scoped).

Catalog edits never touch ``stock`` or ``unit_cost`` of an existing
product; those belong to the sale and restock services.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from kasir.exceptions import LedgerError, InvalidInputError, NotFoundError, ProductNotFoundError, PersistenceError
from kasir.models import Product, Category, SaleLine, Restock
from kasir.services.concurrency import lock_for_update
from kasir.services.ledger_types import parse_money, parse_tenant_id, parse_id, check_keys, MAX_QUANTITY

logger = logging.getLogger(__name__)

CREATE_FIELDS = {'name', 'sale_price', 'unit_cost', 'stock', 'alert_level', 'category_id', 'image_url'}
UPDATE_FIELDS = {'name', 'sale_price', 'alert_level', 'category_id', 'image_url', 'active'}

STOCK_OUT = 'out'
STOCK_LOW = 'low'
STOCK_NORMAL = 'normal'


def get_product(session, tenant_id: str, product_id: int) -> Product:
    """Read-only lookup; products of other tenants are reported as missing."""
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == parse_tenant_id(tenant_id)
    ).first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_for_update(session, tenant_id: str, product_id: int) -> Product:
    """Load a product FOR UPDATE with fresh state from the database."""
    query = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    )
    product = lock_for_update(query).first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def list_products(session, tenant_id: str, include_inactive: bool = False) -> List[Product]:
    """Products for a tenant, newest first."""
    query = session.query(Product).filter(Product.tenant_id == parse_tenant_id(tenant_id))
    if not include_inactive:
        query = query.filter(Product.active.is_(True))
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def search_products(session, tenant_id: str, search_query: str) -> List[Product]:
    """Case-insensitive name search over active products."""
    search_query = (search_query or '').strip()[:100]
    query = session.query(Product).filter(
        Product.tenant_id == parse_tenant_id(tenant_id),
        Product.active.is_(True)
    )
    if search_query:
        query = query.filter(func.lower(Product.name).like(f'%{search_query.lower()}%'))
    return query.order_by(Product.name).all()


def list_low_stock(session, tenant_id: str) -> List[Product]:
    """Active products at or below their alert level, emptiest first."""
    return session.query(Product).filter(
        Product.tenant_id == parse_tenant_id(tenant_id),
        Product.active.is_(True),
        Product.stock <= Product.alert_level
    ).order_by(Product.stock.asc(), Product.name).all()


def stock_status(stock: int, alert_level: int) -> str:
    if stock == 0:
        return STOCK_OUT
    if stock <= alert_level:
        return STOCK_LOW
    return STOCK_NORMAL


def create_product(session, tenant_id: str, data: Dict[str, Any], default_alert_level: int = 0) -> Product:
    """
    Create a product (tenant-scoped).

    ``sale_price`` must be greater than ``unit_cost``; opening ``stock`` and
    ``unit_cost`` may be given here and only here.

    Raises:
        InvalidInputError: for missing/invalid fields
        NotFoundError: when category_id is not one of the tenant's categories
    """
    tenant_id = parse_tenant_id(tenant_id)
    check_keys(data, CREATE_FIELDS, 'product')

    name = _parse_name(data.get('name'))
    sale_price = parse_money(data.get('sale_price'), 'sale_price')
    unit_cost = parse_money(data.get('unit_cost', 0), 'unit_cost', allow_zero=True)
    stock = _parse_non_negative_int(data.get('stock', 0), 'stock')
    alert_level = _parse_non_negative_int(data.get('alert_level', default_alert_level), 'alert_level')
    _check_margin(sale_price, unit_cost)

    category_id = data.get('category_id')
    if category_id is not None:
        category_id = _ensure_category(session, tenant_id, category_id).id

    product = Product(
        tenant_id=tenant_id,
        name=name,
        sale_price=sale_price,
        unit_cost=unit_cost,
        stock=stock,
        alert_level=alert_level,
        category_id=category_id,
        image_url=data.get('image_url'),
        active=True,
    )
    try:
        session.add(product)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Could not create product for tenant {tenant_id}: {e}")
        raise PersistenceError('Could not create product')

    logger.info(f"[CATALOG] Product #{product.id} created for tenant {tenant_id}")
    return product


def update_product(session, tenant_id: str, product_id: int, data: Dict[str, Any]) -> Product:
    """Edit catalog fields; stock and unit cost are not editable here."""
    check_keys(data, UPDATE_FIELDS, 'product update')
    product = get_product(session, tenant_id, product_id)

    try:
        if 'name' in data:
            product.name = _parse_name(data['name'])
        if 'sale_price' in data:
            sale_price = parse_money(data['sale_price'], 'sale_price')
            _check_margin(sale_price, product.unit_cost)
            product.sale_price = sale_price
        if 'alert_level' in data:
            product.alert_level = _parse_non_negative_int(data['alert_level'], 'alert_level')
        if 'category_id' in data:
            category_id = data['category_id']
            product.category_id = None if category_id is None else _ensure_category(session, product.tenant_id, category_id).id
        if 'image_url' in data:
            product.image_url = data['image_url']
        if 'active' in data:
            if not isinstance(data['active'], bool):
                raise InvalidInputError('active must be true or false')
            product.active = data['active']
    except LedgerError:
        session.rollback()
        raise

    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Could not update product {product_id}: {e}")
        raise PersistenceError('Could not update product')
    return product


def remove_product(session, tenant_id: str, product_id: int) -> bool:
    """
    Remove a product from the catalog.

    Products with any sale or restock history are soft-disabled so the
    history stays auditable; otherwise the row is deleted.

    Returns:
        True if the row was deleted, False if it was disabled
    """
    product = get_product(session, tenant_id, product_id)
    has_history = (
        session.query(SaleLine.id).filter(SaleLine.product_id == product.id).first() is not None
        or session.query(Restock.id).filter(Restock.product_id == product.id).first() is not None
    )
    try:
        if has_history:
            product.active = False
        else:
            session.delete(product)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Could not remove product {product_id}: {e}")
        raise PersistenceError('Could not remove product')

    logger.info(f"[CATALOG] Product #{product_id} {'disabled' if has_history else 'deleted'}")
    return not has_history


def create_category(session, tenant_id: str, name: str) -> Category:
    category = Category(tenant_id=parse_tenant_id(tenant_id), name=_parse_name(name))
    session.add(category)
    session.commit()
    return category


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _parse_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError('name is required')
    return value.strip()


def _parse_non_negative_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f'{name} must be a whole number')
    if value < 0:
        raise InvalidInputError(f'{name} cannot be negative')
    if value > MAX_QUANTITY:
        raise InvalidInputError(f'{name} cannot exceed {MAX_QUANTITY}')
    return value


def _check_margin(sale_price: Decimal, unit_cost: Decimal) -> None:
    if sale_price <= unit_cost:
        raise InvalidInputError('sale_price must be greater than unit_cost')


def _ensure_category(session, tenant_id: str, category_id) -> Category:
    category_id = parse_id(category_id, 'category_id')
    category = session.query(Category).filter(
        Category.id == category_id,
        Category.tenant_id == tenant_id
    ).first()
    if category is None:
        raise NotFoundError(f'Category {category_id} not found')
    return category
