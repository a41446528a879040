import pytest
import uuid

from kasir import create_app
from kasir.database import create_all, drop_all, get_session
from kasir.services import catalog_service
from kasir.services.tenant_service import ensure_tenant


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(scope='function', autouse=True)
def schema(app):
    """Fresh tables for every test."""
    drop_all()
    create_all()
    yield
    get_session().remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def tenant1(session):
    """Create first test tenant."""
    suffix = str(uuid.uuid4())[:8]
    tenant = ensure_tenant(session, f'tenant-1-{suffix}', full_name='Owner One', business_name='Toko Satu')
    session.refresh(tenant)
    session.expunge(tenant)
    return tenant


@pytest.fixture(scope='function')
def tenant2(session):
    """Create second test tenant for isolation tests."""
    suffix = str(uuid.uuid4())[:8]
    tenant = ensure_tenant(session, f'tenant-2-{suffix}', full_name='Owner Two', business_name='Toko Dua')
    session.refresh(tenant)
    session.expunge(tenant)
    return tenant


@pytest.fixture(scope='function')
def make_product(session):
    """
    Factory: create a product for a tenant with the given stock/price/cost.

    Fixture objects are detached so request teardown and commits elsewhere
    never expire them; re-read live state with ``reload``.
    """
    def _make(tenant, name='Product', stock=0, sale_price='10000.00', unit_cost='6000.00', alert_level=0):
        product = catalog_service.create_product(session, tenant.id, {
            'name': name,
            'stock': stock,
            'sale_price': sale_price,
            'unit_cost': unit_cost,
            'alert_level': alert_level,
        })
        session.refresh(product)
        session.expunge(product)
        return product
    return _make


@pytest.fixture(scope='function')
def product_tenant1(make_product, tenant1):
    """Stock 5, price 10000, cost 6000."""
    return make_product(tenant1, name='Kopi Susu', stock=5)


@pytest.fixture(scope='function')
def product_tenant2(make_product, tenant2):
    return make_product(tenant2, name='Teh Manis', stock=20, sale_price='5000.00', unit_cost='2000.00')


@pytest.fixture(scope='function')
def reload(session):
    """Re-read a product from the database, bypassing the identity map."""
    from kasir.models import Product

    def _reload(product_id):
        session.expire_all()
        return session.get(Product, product_id)
    return _reload


@pytest.fixture(scope='function')
def fail_on_insert():
    """Make every INSERT of the given model raise a storage error until teardown."""
    from sqlalchemy import event
    from sqlalchemy.exc import SQLAlchemyError

    registered = []

    def _fail(*args):
        raise SQLAlchemyError('disk I/O error')

    def _install(model):
        event.listen(model, 'before_insert', _fail)
        registered.append(model)

    yield _install
    for model in registered:
        event.remove(model, 'before_insert', _fail)
