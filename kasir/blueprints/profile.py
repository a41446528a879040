"""Profile blueprint - tenant (merchant) profile."""
from flask import Blueprint, jsonify, g

from kasir.database import get_session
from kasir.middleware import require_tenant, json_body
from kasir.services import tenant_service
from kasir.services.ledger_types import check_keys

profile_bp = Blueprint('profile', __name__, url_prefix='/api/profile')


@profile_bp.route('', methods=['POST'])
def create_profile():
    """
    Create the caller's profile on sign-up (idempotent).

    Body: {"full_name": "...", "business_name": "..."}, both optional.
    """
    if g.get('tenant_id') is None:
        return jsonify({'status': 'error', 'code': 'unauthorized',
                        'message': 'X-Tenant-ID header is required'}), 401

    body = json_body()
    check_keys(body, tenant_service.PROFILE_FIELDS, 'profile')
    tenant = tenant_service.ensure_tenant(
        get_session(), g.tenant_id,
        full_name=body.get('full_name'),
        business_name=body.get('business_name')
    )
    return jsonify(tenant.to_dict()), 201


@profile_bp.route('', methods=['GET'])
@require_tenant
def get_profile():
    return jsonify(tenant_service.get_tenant(get_session(), g.tenant_id).to_dict())


@profile_bp.route('', methods=['PATCH'])
@require_tenant
def update_profile():
    tenant = tenant_service.update_profile(get_session(), g.tenant_id, json_body())
    return jsonify(tenant.to_dict())
