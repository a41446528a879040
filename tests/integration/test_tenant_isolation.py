"""
Critical integration tests for tenant isolation.
These tests ensure that data is properly isolated between tenants.
"""

import pytest

from kasir.exceptions import ProductNotFoundError, NotFoundError
from kasir.services import catalog_service, report_service
from kasir.services.restock_service import restock_product, list_restocks
from kasir.services.sales_service import confirm_sale, get_sale, list_sales


class TestProductIsolation:
    """Test product isolation between tenants."""

    def test_tenant1_cannot_see_tenant2_products(self, session, tenant1, product_tenant1, product_tenant2):
        products = catalog_service.list_products(session, tenant1.id)
        assert [p.id for p in products] == [product_tenant1.id]

    def test_get_foreign_product_is_not_found(self, session, tenant1, product_tenant2):
        with pytest.raises(ProductNotFoundError):
            catalog_service.get_product(session, tenant1.id, product_tenant2.id)

    def test_same_name_in_different_tenants(self, session, tenant1, tenant2, make_product):
        a = make_product(tenant1, name='Kopi')
        b = make_product(tenant2, name='Kopi')
        assert [p.id for p in catalog_service.search_products(session, tenant1.id, 'kopi')] == [a.id]
        assert [p.id for p in catalog_service.search_products(session, tenant2.id, 'kopi')] == [b.id]


class TestLedgerIsolation:
    """Sales and restocks never cross tenants."""

    def test_cannot_sell_foreign_product(self, session, tenant1, product_tenant2, reload):
        with pytest.raises(ProductNotFoundError):
            confirm_sale(session, tenant1.id, [{'product_id': product_tenant2.id, 'quantity': 1}])
        assert reload(product_tenant2.id).stock == 20

    def test_mixed_tenant_sale_rejected_atomically(self, session, tenant1, product_tenant1, product_tenant2, reload):
        with pytest.raises(ProductNotFoundError):
            confirm_sale(session, tenant1.id, [
                {'product_id': product_tenant1.id, 'quantity': 1},
                {'product_id': product_tenant2.id, 'quantity': 1},
            ])
        assert reload(product_tenant1.id).stock == 5
        assert reload(product_tenant2.id).stock == 20

    def test_cannot_restock_foreign_product(self, session, tenant1, product_tenant2, reload):
        with pytest.raises(ProductNotFoundError):
            restock_product(session, tenant1.id, product_tenant2.id, 10, '100')
        assert reload(product_tenant2.id).stock == 20

    def test_history_is_tenant_scoped(self, session, tenant1, tenant2, product_tenant1, product_tenant2):
        sale = confirm_sale(session, tenant2.id, [{'product_id': product_tenant2.id, 'quantity': 1}])
        restock_product(session, tenant2.id, product_tenant2.id, 1, '2000')

        assert list_sales(session, tenant1.id) == []
        assert list_restocks(session, tenant1.id) == []
        with pytest.raises(NotFoundError):
            get_sale(session, tenant1.id, sale.sale_id)

    def test_reports_are_tenant_scoped(self, session, tenant1, tenant2, product_tenant2):
        confirm_sale(session, tenant2.id, [{'product_id': product_tenant2.id, 'quantity': 2}])

        assert report_service.today_stats(session, tenant1.id)['count'] == 0
        assert report_service.today_stats(session, tenant2.id)['count'] == 1
