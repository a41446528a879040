"""
Report service - read-only rollups over recorded sales.

Revenue and cost come from the totals captured on each sale, so reports do
not move when a product's price or cost changes later.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func

from kasir.models import Product, Sale
from kasir.services.costing import quantize_money, profit_margin
from kasir.services.ledger_types import parse_tenant_id
from kasir.time_utils import day_range, month_range, utcnow

REPORTS_MODULE = 'reports'


def today_stats(session, tenant_id: str, today: Optional[date] = None, cache=None, ttl: Optional[int] = None) -> dict:
    """
    Revenue, profit and number of sales for one day (UTC).

    Returns:
        dict with revenue, cost, profit (Decimal) and count (int)
    """
    tenant_id = parse_tenant_id(tenant_id)
    today = today or utcnow().date()

    def _load():
        start, end = day_range(today)
        return _totals(session, tenant_id, start, end)

    if cache is None:
        return _load()
    return cache.memoize(tenant_id, REPORTS_MODULE, f'today:{today.isoformat()}', _load, ttl)


def monthly_stats(session, tenant_id: str, year: int, month: int, cache=None, ttl: Optional[int] = None) -> dict:
    """
    Per-day revenue/cost/profit for a calendar month plus month totals.

    Returns:
        dict with year, month, totals (dict) and days (list of dicts with
        date, revenue, cost, profit, count), days without sales omitted
    """
    tenant_id = parse_tenant_id(tenant_id)

    def _load():
        start, end = month_range(year, month)
        sales = session.query(Sale.created_at, Sale.total_amount, Sale.total_cost).filter(
            Sale.tenant_id == tenant_id,
            Sale.created_at >= start,
            Sale.created_at < end
        ).order_by(Sale.created_at).all()

        days = {}
        for created_at, amount, cost in sales:
            key = created_at.date().isoformat()
            bucket = days.setdefault(key, {'date': key, 'revenue': Decimal('0.00'),
                                           'cost': Decimal('0.00'), 'count': 0})
            bucket['revenue'] += amount
            bucket['cost'] += cost
            bucket['count'] += 1

        rows = []
        for bucket in days.values():
            bucket['revenue'] = quantize_money(bucket['revenue'])
            bucket['cost'] = quantize_money(bucket['cost'])
            bucket['profit'] = bucket['revenue'] - bucket['cost']
            rows.append(bucket)

        return {
            'year': year,
            'month': month,
            'totals': _totals(session, tenant_id, start, end),
            'days': rows,
        }

    if cache is None:
        return _load()
    return cache.memoize(tenant_id, REPORTS_MODULE, f'monthly:{year:04d}-{month:02d}', _load, ttl)


def _totals(session, tenant_id: str, start, end) -> dict:
    row = session.query(
        func.coalesce(func.sum(Sale.total_amount), 0).label('revenue'),
        func.coalesce(func.sum(Sale.total_cost), 0).label('cost'),
        func.count(Sale.id).label('count')
    ).filter(
        Sale.tenant_id == tenant_id,
        Sale.created_at >= start,
        Sale.created_at < end
    ).one()

    revenue = quantize_money(Decimal(str(row.revenue or 0)))
    cost = quantize_money(Decimal(str(row.cost or 0)))
    return {
        'revenue': revenue,
        'cost': cost,
        'profit': revenue - cost,
        'count': int(row.count or 0),
    }


def product_margins(session, tenant_id: str) -> list:
    """Current profit margin (%) of every active product, lowest first."""
    products = session.query(Product).filter(
        Product.tenant_id == parse_tenant_id(tenant_id),
        Product.active.is_(True)
    ).all()
    rows = [{
        'product_id': p.id,
        'name': p.name,
        'sale_price': p.sale_price,
        'unit_cost': p.unit_cost,
        'margin_pct': profit_margin(p.sale_price, p.unit_cost),
    } for p in products]
    return sorted(rows, key=lambda row: (row['margin_pct'], row['product_id']))
