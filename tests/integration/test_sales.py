"""
Integration tests for sale confirmation (checkout).
"""

import threading
import pytest
from decimal import Decimal

from kasir.exceptions import (
    InsufficientStockError, ProductNotFoundError, InvalidInputError,
    OperationCancelled, HistoryImmutableError, ConflictError, PersistenceError
)
from kasir.models import Sale, SaleLine
from kasir.services import catalog_service
from kasir.services.concurrency import ProductLockRegistry
from kasir.services.events import LedgerEventBus, SALE_COMPLETED, PRODUCT_STOCK_CHANGED
from kasir.services.sales_service import confirm_sale, get_sale, list_sales


class TestConfirmSale:
    """Happy path and totals."""

    def test_sale_decrements_stock_and_records_totals(self, session, tenant1, product_tenant1, reload):
        """stock 5, price 10000, cost 6000, sell 3 -> 30000 / 18000, stock 2."""
        result = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 3}])

        assert result.total_amount == Decimal('30000.00')
        assert result.total_cost == Decimal('18000.00')
        assert reload(product_tenant1.id).stock == 2

        sale = get_sale(session, tenant1.id, result.sale_id)
        assert len(sale.lines) == 1
        assert sale.lines[0].unit_sale_price == Decimal('10000.00')
        assert sale.lines[0].unit_cost == Decimal('6000.00')
        assert sale.profit == Decimal('12000.00')

    def test_selling_entire_stock(self, session, tenant1, product_tenant1, reload):
        confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 5}])
        assert reload(product_tenant1.id).stock == 0

    def test_multi_line_totals_sum_lines(self, session, tenant1, make_product):
        a = make_product(tenant1, name='A', stock=10, sale_price='1500.50', unit_cost='1000.25')
        b = make_product(tenant1, name='B', stock=10, sale_price='200.00', unit_cost='50.00')

        result = confirm_sale(session, tenant1.id, [
            {'product_id': a.id, 'quantity': 2},
            {'product_id': b.id, 'quantity': 4},
        ])

        assert result.total_amount == Decimal('3801.00')
        assert result.total_cost == Decimal('2200.50')
        sale = get_sale(session, tenant1.id, result.sale_id)
        assert sum(line.line_amount for line in sale.lines) == sale.total_amount
        assert sum(line.line_cost for line in sale.lines) == sale.total_cost

    def test_line_snapshot_survives_price_change(self, session, tenant1, product_tenant1):
        result = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])
        catalog_service.update_product(session, tenant1.id, product_tenant1.id, {'sale_price': '12000'})

        sale = get_sale(session, tenant1.id, result.sale_id)
        assert sale.lines[0].unit_sale_price == Decimal('10000.00')
        assert sale.total_amount == Decimal('10000.00')

    def test_list_sales_newest_first(self, session, tenant1, product_tenant1):
        first = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])
        second = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])

        sales = list_sales(session, tenant1.id)
        assert [s.id for s in sales] == [second.sale_id, first.sale_id]
        assert len(list_sales(session, tenant1.id, limit=1)) == 1


class TestSaleFailures:
    """Failed sales leave no trace."""

    def test_insufficient_stock_changes_nothing(self, session, tenant1, make_product, reload):
        product = make_product(tenant1, stock=2)

        with pytest.raises(InsufficientStockError) as exc_info:
            confirm_sale(session, tenant1.id, [{'product_id': product.id, 'quantity': 5}])

        assert exc_info.value.requested == 5
        assert exc_info.value.available == 2
        assert reload(product.id).stock == 2
        assert session.query(Sale).count() == 0

    def test_multi_line_sale_is_atomic(self, session, tenant1, make_product, reload):
        """Line A is fine, line B oversells: A's stock must not move."""
        a = make_product(tenant1, name='A', stock=10)
        b = make_product(tenant1, name='B', stock=1)

        with pytest.raises(InsufficientStockError) as exc_info:
            confirm_sale(session, tenant1.id, [
                {'product_id': a.id, 'quantity': 3},
                {'product_id': b.id, 'quantity': 2},
            ])

        assert exc_info.value.product_id == b.id
        assert reload(a.id).stock == 10
        assert reload(b.id).stock == 1
        assert session.query(Sale).count() == 0
        assert session.query(SaleLine).count() == 0

    def test_unknown_product(self, session, tenant1):
        with pytest.raises(ProductNotFoundError):
            confirm_sale(session, tenant1.id, [{'product_id': 999, 'quantity': 1}])

    def test_disabled_product_rejected(self, session, tenant1, product_tenant1, reload):
        catalog_service.update_product(session, tenant1.id, product_tenant1.id, {'active': False})

        with pytest.raises(InvalidInputError):
            confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])
        assert reload(product_tenant1.id).stock == 5

    def test_empty_sale_rejected(self, session, tenant1):
        with pytest.raises(InvalidInputError):
            confirm_sale(session, tenant1.id, [])

    def test_oversized_quantity_rejected(self, session, tenant1, product_tenant1, reload):
        with pytest.raises(InvalidInputError):
            confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 2**63}])
        assert reload(product_tenant1.id).stock == 5
        assert session.query(Sale).count() == 0

    def test_storage_failure_rolls_back_stock(self, session, tenant1, make_product, reload, fail_on_insert):
        """The sale insert fails after stock was decremented in the same flush."""
        a = make_product(tenant1, name='A', stock=10)
        b = make_product(tenant1, name='B', stock=4)
        fail_on_insert(Sale)

        with pytest.raises(PersistenceError):
            confirm_sale(session, tenant1.id, [
                {'product_id': a.id, 'quantity': 3},
                {'product_id': b.id, 'quantity': 1},
            ])

        assert reload(a.id).stock == 10
        assert reload(b.id).stock == 4
        assert reload(a.id).unit_cost == Decimal('6000.00')
        assert session.query(Sale).count() == 0
        assert session.query(SaleLine).count() == 0

    def test_cancelled_before_write(self, session, tenant1, product_tenant1, reload):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelled):
            confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}],
                         cancel_event=cancel)

        assert reload(product_tenant1.id).stock == 5
        assert session.query(Sale).count() == 0

    def test_busy_product_times_out_with_conflict(self, session, tenant1, product_tenant1, reload):
        locks = ProductLockRegistry()

        with locks.hold(tenant1.id, [product_tenant1.id], timeout=1):
            with pytest.raises(ConflictError):
                confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}],
                             locks=locks, lock_timeout=0.05)

        assert reload(product_tenant1.id).stock == 5


class TestSaleEvents:
    """Events are published only after commit."""

    def test_events_after_success(self, session, tenant1, product_tenant1):
        bus = LedgerEventBus()
        received = []
        bus.subscribe(SALE_COMPLETED, received.append)
        bus.subscribe(PRODUCT_STOCK_CHANGED, received.append)

        result = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 3}],
                              events=bus)

        assert [e.name for e in received] == [SALE_COMPLETED, PRODUCT_STOCK_CHANGED]
        assert received[0].payload['sale_id'] == result.sale_id
        assert received[1].payload == {
            'product_id': product_tenant1.id, 'old_stock': 5, 'new_stock': 2, 'low_stock': False
        }

    def test_no_events_on_failure(self, session, tenant1, product_tenant1):
        bus = LedgerEventBus()
        received = []
        bus.subscribe(SALE_COMPLETED, received.append)

        with pytest.raises(InsufficientStockError):
            confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 50}], events=bus)
        assert received == []

    def test_failing_subscriber_keeps_sale(self, session, tenant1, product_tenant1, reload):
        bus = LedgerEventBus()

        def broken(event):
            raise RuntimeError('subscriber down')

        bus.subscribe(SALE_COMPLETED, broken)
        result = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}], events=bus)

        assert result.sale_id is not None
        assert reload(product_tenant1.id).stock == 4


class TestHistoryImmutable:
    """Sale records are append-only."""

    def test_sale_cannot_be_updated(self, session, tenant1, product_tenant1):
        result = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])
        sale = session.get(Sale, result.sale_id)
        sale.total_amount = Decimal('1.00')

        with pytest.raises(HistoryImmutableError):
            session.commit()
        session.rollback()

    def test_sale_cannot_be_deleted(self, session, tenant1, product_tenant1):
        result = confirm_sale(session, tenant1.id, [{'product_id': product_tenant1.id, 'quantity': 1}])
        session.delete(session.get(SaleLine, get_sale(session, tenant1.id, result.sale_id).lines[0].id))

        with pytest.raises(HistoryImmutableError):
            session.commit()
        session.rollback()
