"""Sales blueprint - checkout and sales history (JSON)."""
from flask import Blueprint, request, jsonify, current_app, g

from kasir.database import get_session
from kasir.exceptions import InvalidInputError
from kasir.middleware import require_tenant, json_body, ledger_settings, retry_settings
from kasir.services import sales_service
from kasir.services.concurrency import run_with_retry
from kasir.services.ledger_types import check_keys

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')


@sales_bp.route('', methods=['POST'])
@require_tenant
def create_sale():
    """
    Confirm a sale.

    Body: {"lines": [{"product_id": 1, "quantity": 2}, ...]}

    Returns:
        201 with {sale_id, total_amount, total_cost}
    """
    body = json_body()
    check_keys(body, {'lines'}, 'sale')
    db_session = get_session()

    result = run_with_retry(
        lambda: sales_service.confirm_sale(db_session, g.tenant_id, body.get('lines'), **ledger_settings()),
        **retry_settings()
    )
    current_app.logger.info(f"Sale #{result.sale_id} confirmed via API for tenant {g.tenant_id}")
    return jsonify(result.to_dict()), 201


@sales_bp.route('', methods=['GET'])
@require_tenant
def list_sales():
    limit = request.args.get('limit', type=int)
    if limit is not None and limit <= 0:
        raise InvalidInputError('limit must be greater than 0')
    sales = sales_service.list_sales(get_session(), g.tenant_id, limit=limit)
    return jsonify({'sales': [sale.to_dict() for sale in sales]})


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_tenant
def detail_sale(sale_id: int):
    sale = sales_service.get_sale(get_session(), g.tenant_id, sale_id)
    return jsonify(sale.to_dict())
