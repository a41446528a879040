"""
Sales (checkout) service with transactional logic - Multi-Tenant.
Decrements stock and records the sale with its lines in one commit.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from kasir.exceptions import (
    LedgerError, NotFoundError, ProductNotFoundError, InvalidInputError,
    ConflictError, PersistenceError, OperationCancelled
)
from kasir.models import Product, Sale, SaleLine
from kasir.services import costing
from kasir.services.concurrency import (
    product_locks, apply_lock_timeout, lock_for_update, is_lock_timeout
)
from kasir.services.events import publish_all, SALE_COMPLETED, PRODUCT_STOCK_CHANGED
from kasir.services.ledger_types import (
    SaleRequest, SaleResult, LedgerEvent, parse_sale_request, parse_tenant_id
)

logger = logging.getLogger(__name__)


def confirm_sale(session, tenant_id: str, lines, *, events=None, locks=product_locks,
                 lock_timeout: float = 5.0, cancel_event=None) -> SaleResult:
    """
    Confirm a sale with full transactional processing (tenant-scoped).

    Steps:
    1. Parse lines (positive quantities, no duplicate products)
    2. Take exclusive access to every product, in id order
    3. Load products FOR UPDATE; unknown or foreign products fail
    4. Validate stock for every line before touching anything
    5. Compute totals from the price/cost just read
    6. Decrement stock + insert sale and lines, single commit
    7. Publish SaleCompleted / ProductStockChanged

    Args:
        session: SQLAlchemy session (injected)
        tenant_id: owning tenant
        lines: list of {product_id, quantity} dicts, or a SaleRequest
        events: optional LedgerEventBus notified after commit
        locks: ProductLockRegistry guarding the products
        lock_timeout: seconds to wait for exclusive access
        cancel_event: optional threading.Event; when set before the write
            starts the sale is abandoned with nothing written

    Returns:
        SaleResult with the new sale id and totals

    Raises:
        InvalidInputError, ProductNotFoundError, InsufficientStockError,
        ConflictError, OperationCancelled, PersistenceError
    """
    if isinstance(lines, SaleRequest):
        request = lines
    else:
        request = parse_sale_request(tenant_id, lines)
    tenant_id = request.tenant_id
    product_ids = [line.product_id for line in request.lines]

    with locks.hold(tenant_id, product_ids, lock_timeout):
        try:
            apply_lock_timeout(session, lock_timeout)
            products = _lock_products(session, tenant_id, product_ids)

            # 1. Resolve every product (tenant-scoped)
            for line in request.lines:
                product = products.get(line.product_id)
                if product is None:
                    raise ProductNotFoundError(line.product_id)
                if not product.active:
                    raise InvalidInputError(f'Product "{product.name}" is disabled')

            # 2. Validate stock for all lines before any mutation
            for line in request.lines:
                product = products[line.product_id]
                costing.validate_sale_line(line.quantity, product.stock, product.id, product.name)

            # 3. Totals and line snapshots from the values read above
            total_amount = Decimal('0.00')
            total_cost = Decimal('0.00')
            sale_lines = []
            stock_changes = []
            changed = []
            for line in request.lines:
                product = products[line.product_id]
                unit_sale_price = costing.quantize_money(product.sale_price)
                unit_cost = costing.quantize_money(product.unit_cost)
                line_amount, line_cost = costing.line_totals(line.quantity, unit_sale_price, unit_cost)
                total_amount += line_amount
                total_cost += line_cost
                sale_lines.append(SaleLine(
                    product_id=product.id,
                    quantity=line.quantity,
                    unit_sale_price=unit_sale_price,
                    unit_cost=unit_cost,
                ))
                stock_changes.append((product, product.stock - line.quantity))
                changed.append({
                    'product_id': product.id,
                    'old_stock': product.stock,
                    'new_stock': product.stock - line.quantity,
                    'low_stock': product.stock - line.quantity <= product.alert_level,
                })

            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled()

            # 4. Atomic write: stock decrements + sale record
            for product, new_stock in stock_changes:
                product.stock = new_stock

            sale = Sale(
                tenant_id=tenant_id,
                total_amount=costing.quantize_money(total_amount),
                total_cost=costing.quantize_money(total_cost),
                lines=sale_lines,
            )
            session.add(sale)
            session.flush()
            result = SaleResult(sale_id=sale.id, total_amount=sale.total_amount, total_cost=sale.total_cost)
            session.commit()

        except LedgerError:
            session.rollback()
            raise
        except OperationalError as e:
            session.rollback()
            if is_lock_timeout(e):
                raise ConflictError('Products are busy, try again')
            logger.error(f"[SALE] Persistence failure for tenant {tenant_id}: {e}")
            raise PersistenceError('Could not record the sale')
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[SALE] Persistence failure for tenant {tenant_id}: {e}")
            raise PersistenceError('Could not record the sale')
        except Exception:
            session.rollback()
            raise

    logger.info(
        f"[SALE] Sale #{result.sale_id} tenant={tenant_id} lines={len(request.lines)} "
        f"amount={result.total_amount} cost={result.total_cost}"
    )

    publish_all(events, [
        LedgerEvent(SALE_COMPLETED, tenant_id, result.to_dict()),
        *[LedgerEvent(PRODUCT_STOCK_CHANGED, tenant_id, change) for change in changed],
    ])
    return result


def get_sale(session, tenant_id: str, sale_id: int) -> Sale:
    """Fetch one sale with its lines (tenant-scoped)."""
    sale = (session.query(Sale)
            .options(selectinload(Sale.lines))
            .filter(Sale.id == sale_id, Sale.tenant_id == parse_tenant_id(tenant_id))
            .first())
    if sale is None:
        raise NotFoundError(f'Sale {sale_id} not found')
    return sale


def list_sales(session, tenant_id: str, limit: Optional[int] = None) -> List[Sale]:
    """Sales for a tenant, newest first."""
    query = (session.query(Sale)
             .options(selectinload(Sale.lines))
             .filter(Sale.tenant_id == parse_tenant_id(tenant_id))
             .order_by(Sale.created_at.desc(), Sale.id.desc()))
    if limit:
        query = query.limit(limit)
    return query.all()


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _lock_products(session, tenant_id: str, product_ids: List[int]) -> Dict[int, Product]:
    """Lock product rows FOR UPDATE (id order) and return them by id."""
    if not product_ids:
        return {}
    query = session.query(Product).filter(
        Product.id.in_(product_ids),
        Product.tenant_id == tenant_id
    ).order_by(Product.id)
    return {p.id: p for p in lock_for_update(query).all()}
