"""
Restock service - stock-in with weighted-average cost recomputation.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from kasir.exceptions import (
    LedgerError, NotFoundError, InvalidInputError, ConflictError,
    PersistenceError, OperationCancelled
)
from kasir.models import Restock
from kasir.services import costing
from kasir.services.catalog_service import get_for_update
from kasir.services.concurrency import product_locks, apply_lock_timeout, is_lock_timeout
from kasir.services.events import publish_all, PRODUCT_RESTOCKED, PRODUCT_STOCK_CHANGED
from kasir.services.ledger_types import (
    RestockRequest, RestockResult, LedgerEvent, parse_restock_request, parse_tenant_id, MAX_QUANTITY
)

logger = logging.getLogger(__name__)


def restock_product(session, tenant_id: str, product_id: int, quantity: int, purchase_unit_cost,
                    *, events=None, locks=product_locks, lock_timeout: float = 5.0,
                    cancel_event=None) -> RestockResult:
    """
    Add a purchased batch to a product (tenant-scoped).

    Steps:
    1. Validate quantity > 0 and purchase_unit_cost > 0
    2. Take exclusive access to the product and read it FOR UPDATE
    3. new_stock = stock + quantity; new unit cost by weighted average
    4. Update the product and insert the Restock record, single commit
    5. Publish ProductRestocked / ProductStockChanged

    The restock is allowed even when the new unit cost reaches or passes the
    sale price; the result then has ``margin_inverted`` set and a warning is
    logged so the catalog owner can reprice.

    Returns:
        RestockResult with old/new stock, old/new unit cost and record id

    Raises:
        InvalidInputError, ProductNotFoundError, ConflictError,
        OperationCancelled, PersistenceError
    """
    request = parse_restock_request(tenant_id, product_id, quantity, purchase_unit_cost)
    return apply_restock(session, request, events=events, locks=locks,
                         lock_timeout=lock_timeout, cancel_event=cancel_event)


def apply_restock(session, request: RestockRequest, *, events=None, locks=product_locks,
                  lock_timeout: float = 5.0, cancel_event=None) -> RestockResult:
    """Run an already-validated restock request; see restock_product."""
    tenant_id = request.tenant_id

    with locks.hold(tenant_id, [request.product_id], lock_timeout):
        try:
            apply_lock_timeout(session, lock_timeout)
            product = get_for_update(session, tenant_id, request.product_id)
            if not product.active:
                raise InvalidInputError(f'Product "{product.name}" is disabled')

            old_stock = product.stock
            old_unit_cost = costing.quantize_money(product.unit_cost)
            new_stock = old_stock + request.quantity
            if new_stock > MAX_QUANTITY:
                raise InvalidInputError(
                    f'Restock would raise stock of "{product.name}" above {MAX_QUANTITY}'
                )
            new_unit_cost = costing.compute_weighted_average_cost(
                old_stock, old_unit_cost, request.quantity, request.purchase_unit_cost
            )
            margin_inverted = new_unit_cost >= product.sale_price
            product_name = product.name
            alert_level = product.alert_level

            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled()

            product.stock = new_stock
            product.unit_cost = new_unit_cost
            record = Restock(
                tenant_id=tenant_id,
                product_id=product.id,
                quantity=request.quantity,
                purchase_unit_cost=request.purchase_unit_cost,
                old_stock=old_stock,
                new_stock=new_stock,
                old_unit_cost=old_unit_cost,
                new_unit_cost=new_unit_cost,
            )
            session.add(record)
            session.flush()
            result = RestockResult(
                restock_id=record.id,
                old_stock=old_stock,
                new_stock=new_stock,
                old_unit_cost=old_unit_cost,
                new_unit_cost=new_unit_cost,
                margin_inverted=margin_inverted,
            )
            session.commit()

        except LedgerError:
            session.rollback()
            raise
        except OperationalError as e:
            session.rollback()
            if is_lock_timeout(e):
                raise ConflictError(f'Product {request.product_id} is busy, try again')
            logger.error(f"[RESTOCK] Persistence failure for product {request.product_id}: {e}")
            raise PersistenceError('Could not record the restock')
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[RESTOCK] Persistence failure for product {request.product_id}: {e}")
            raise PersistenceError('Could not record the restock')
        except Exception:
            session.rollback()
            raise

    logger.info(
        f"[RESTOCK] Restock #{result.restock_id} product={request.product_id} tenant={tenant_id} "
        f"stock {old_stock}->{new_stock} unit_cost {old_unit_cost}->{new_unit_cost}"
    )
    if margin_inverted:
        logger.warning(
            f"[RESTOCK] Unit cost {new_unit_cost} of \"{product_name}\" is not below its sale price; "
            f"product {request.product_id} now sells at a loss"
        )

    publish_all(events, [
        LedgerEvent(PRODUCT_RESTOCKED, tenant_id, {'product_id': request.product_id, **result.to_dict()}),
        LedgerEvent(PRODUCT_STOCK_CHANGED, tenant_id, {
            'product_id': request.product_id,
            'old_stock': old_stock,
            'new_stock': new_stock,
            'low_stock': new_stock <= alert_level,
        }),
    ])
    return result


def get_restock(session, tenant_id: str, restock_id: int) -> Restock:
    record = session.query(Restock).filter(
        Restock.id == restock_id,
        Restock.tenant_id == parse_tenant_id(tenant_id)
    ).first()
    if record is None:
        raise NotFoundError(f'Restock {restock_id} not found')
    return record


def list_restocks(session, tenant_id: str, product_id: Optional[int] = None) -> List[Restock]:
    """Restock history for a tenant (optionally one product), newest first."""
    query = session.query(Restock).filter(Restock.tenant_id == parse_tenant_id(tenant_id))
    if product_id is not None:
        query = query.filter(Restock.product_id == product_id)
    return query.order_by(Restock.created_at.desc(), Restock.id.desc()).all()
