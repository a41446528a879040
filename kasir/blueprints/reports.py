"""Reports blueprint - daily/monthly sales rollups and product margins (JSON)."""
from datetime import date

from flask import Blueprint, request, jsonify, current_app, g

from kasir.database import get_session
from kasir.exceptions import InvalidInputError
from kasir.middleware import require_tenant
from kasir.services import report_service
from kasir.time_utils import utcnow

reports_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


def _cache_args():
    return {
        'cache': current_app.extensions.get('cache'),
        'ttl': current_app.config.get('CACHE_REPORTS_TTL'),
    }


@reports_bp.route('/today', methods=['GET'])
@require_tenant
def today():
    """Totals for one day; ?date=YYYY-MM-DD, defaults to today (UTC)."""
    raw = request.args.get('date')
    day = None
    if raw:
        try:
            day = date.fromisoformat(raw)
        except ValueError:
            raise InvalidInputError('date must be YYYY-MM-DD')

    stats = report_service.today_stats(get_session(), g.tenant_id, day, **_cache_args())
    return jsonify(stats)


@reports_bp.route('/monthly', methods=['GET'])
@require_tenant
def monthly():
    """Per-day rollup for ?year=&month=, defaults to the current month."""
    now = utcnow()
    year = request.args.get('year', default=now.year, type=int)
    month = request.args.get('month', default=now.month, type=int)
    if not 1 <= month <= 12 or year < 1:
        raise InvalidInputError('Invalid year/month')

    stats = report_service.monthly_stats(get_session(), g.tenant_id, year, month, **_cache_args())
    return jsonify(stats)


@reports_bp.route('/margins', methods=['GET'])
@require_tenant
def margins():
    rows = report_service.product_margins(get_session(), g.tenant_id)
    return jsonify({'products': rows})
