"""Catalog blueprint - products CRUD, restock and stock alerts (JSON)."""
from flask import Blueprint, request, jsonify, current_app, g

from kasir.database import get_session
from kasir.middleware import require_tenant, json_body, ledger_settings, retry_settings
from kasir.services import catalog_service, restock_service
from kasir.services.concurrency import run_with_retry
from kasir.services.ledger_types import parse_restock_body, parse_id

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _product_json(product):
    data = product.to_dict()
    data['stock_status'] = catalog_service.stock_status(product.stock, product.alert_level)
    return data


@catalog_bp.route('/products', methods=['GET'])
@require_tenant
def list_products():
    """List products; ?q= searches by name, ?include_inactive=1 shows disabled ones."""
    db_session = get_session()
    search_query = request.args.get('q', '').strip()
    if search_query:
        products = catalog_service.search_products(db_session, g.tenant_id, search_query)
    else:
        include_inactive = request.args.get('include_inactive') in ('1', 'true')
        products = catalog_service.list_products(db_session, g.tenant_id, include_inactive=include_inactive)
    return jsonify({'products': [_product_json(p) for p in products]})


@catalog_bp.route('/products', methods=['POST'])
@require_tenant
def create_product():
    product = catalog_service.create_product(
        get_session(), g.tenant_id, json_body(),
        default_alert_level=current_app.config.get('LOW_STOCK_THRESHOLD', 0)
    )
    return jsonify(_product_json(product)), 201


@catalog_bp.route('/products/low-stock', methods=['GET'])
@require_tenant
def low_stock():
    products = catalog_service.list_low_stock(get_session(), g.tenant_id)
    return jsonify({'products': [_product_json(p) for p in products]})


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
@require_tenant
def detail_product(product_id: int):
    product = catalog_service.get_product(get_session(), g.tenant_id, product_id)
    return jsonify(_product_json(product))


@catalog_bp.route('/products/<int:product_id>', methods=['PATCH'])
@require_tenant
def update_product(product_id: int):
    product = catalog_service.update_product(get_session(), g.tenant_id, product_id, json_body())
    return jsonify(_product_json(product))


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_tenant
def delete_product(product_id: int):
    deleted = catalog_service.remove_product(get_session(), g.tenant_id, product_id)
    return jsonify({'status': 'ok', 'deleted': deleted, 'disabled': not deleted})


@catalog_bp.route('/products/<int:product_id>/restock', methods=['POST'])
@require_tenant
def restock(product_id: int):
    """
    Receive a purchased batch.

    Body: {"quantity": 10, "purchase_unit_cost": "5000.00"}

    Returns:
        200 with old/new stock and unit cost, and margin_inverted
    """
    restock_request = parse_restock_body(g.tenant_id, product_id, json_body())
    db_session = get_session()

    result = run_with_retry(
        lambda: restock_service.apply_restock(db_session, restock_request, **ledger_settings()),
        **retry_settings()
    )
    return jsonify(result.to_dict())


@catalog_bp.route('/restocks', methods=['GET'])
@require_tenant
def list_restocks():
    product_id = request.args.get('product_id')
    if product_id is not None:
        product_id = parse_id(product_id, 'product_id')
    records = restock_service.list_restocks(get_session(), g.tenant_id, product_id=product_id)
    return jsonify({'restocks': [r.to_dict() for r in records]})


@catalog_bp.route('/restocks/<int:restock_id>', methods=['GET'])
@require_tenant
def detail_restock(restock_id: int):
    record = restock_service.get_restock(get_session(), g.tenant_id, restock_id)
    return jsonify(record.to_dict())
