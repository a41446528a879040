"""Middleware for tenant context."""
from functools import wraps

from flask import g, request, jsonify, current_app

from kasir.database import get_session
from kasir.exceptions import InvalidInputError

TENANT_HEADER = 'X-Tenant-ID'


def load_tenant():
    """
    Load the calling tenant into g (Flask's per-request global).

    Called before each request. The tenant id comes from the
    ``X-Tenant-ID`` header set by the authenticating gateway.
    """
    tenant_id = request.headers.get(TENANT_HEADER, '').strip()
    g.tenant_id = tenant_id or None


def require_tenant(f):
    """
    Decorator: Require a known, active tenant.

    Returns 401 JSON when no tenant header was sent and 404 JSON when the
    tenant has no profile yet.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('tenant_id') is None:
            return jsonify({
                'status': 'error',
                'code': 'unauthorized',
                'message': f'{TENANT_HEADER} header is required'
            }), 401

        from kasir.services.tenant_service import get_tenant
        get_tenant(get_session(), g.tenant_id)
        return f(*args, **kwargs)
    return decorated_function


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        raise InvalidInputError('Request body must be JSON')
    return body


def ledger_settings():
    """Keyword arguments shared by every ledger write made from a request."""
    return {
        'events': current_app.extensions.get('ledger_events'),
        'lock_timeout': current_app.config.get('LEDGER_LOCK_TIMEOUT', 5.0),
    }


def retry_settings():
    return {
        'attempts': current_app.config.get('LEDGER_CONFLICT_RETRIES', 3),
        'backoff_base': current_app.config.get('LEDGER_RETRY_BACKOFF', 0.1),
    }
