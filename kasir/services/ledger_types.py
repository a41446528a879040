"""
Request and result structures for the ledger operations.

Requests are parsed from plain dicts (JSON bodies) into frozen dataclasses.
Unknown keys, wrong types, non-positive quantities/prices and duplicate
product lines are rejected with InvalidInputError before any state is read.
"""
from __future__ import annotations

import decimal
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from kasir.exceptions import InvalidInputError
from kasir.services.costing import MONEY_QUANT

# Largest stock a product row can hold (PostgreSQL INTEGER)
MAX_QUANTITY = 2**31 - 1


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class SaleRequest:
    tenant_id: str
    lines: Tuple[SaleLineRequest, ...]


@dataclass(frozen=True)
class RestockRequest:
    tenant_id: str
    product_id: int
    quantity: int
    purchase_unit_cost: Decimal


@dataclass(frozen=True)
class SaleResult:
    sale_id: int
    total_amount: Decimal
    total_cost: Decimal

    def to_dict(self):
        return {
            'sale_id': self.sale_id,
            'total_amount': str(self.total_amount),
            'total_cost': str(self.total_cost),
        }


@dataclass(frozen=True)
class RestockResult:
    restock_id: int
    old_stock: int
    new_stock: int
    old_unit_cost: Decimal
    new_unit_cost: Decimal
    margin_inverted: bool = False

    @property
    def unit_cost_change(self) -> Decimal:
        return self.new_unit_cost - self.old_unit_cost

    def to_dict(self):
        return {
            'restock_id': self.restock_id,
            'old_stock': self.old_stock,
            'new_stock': self.new_stock,
            'old_unit_cost': str(self.old_unit_cost),
            'new_unit_cost': str(self.new_unit_cost),
            'unit_cost_change': str(self.unit_cost_change),
            'margin_inverted': self.margin_inverted,
        }


@dataclass
class LedgerEvent:
    """Notification emitted after a ledger operation has committed."""
    name: str
    tenant_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        return {'event': self.name, 'tenant_id': self.tenant_id, 'payload': self.payload}


# =====================================================
# PARSERS
# =====================================================

def check_keys(data: Dict[str, Any], allowed: set, what: str) -> None:
    if not isinstance(data, dict):
        raise InvalidInputError(f'{what} must be an object')
    unknown = set(data) - allowed
    if unknown:
        raise InvalidInputError(f'Unknown field(s) in {what}: {", ".join(sorted(unknown))}')


def parse_tenant_id(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError('tenant_id is required')
    return value.strip()


def parse_id(value: Any, name: str) -> int:
    """Accept an int or a string of digits; bools and floats are rejected."""
    if isinstance(value, bool):
        raise InvalidInputError(f'{name} must be an integer')
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.strip().isdigit():
        result = int(value.strip())
    else:
        raise InvalidInputError(f'{name} must be an integer')
    if result <= 0:
        raise InvalidInputError(f'{name} must be greater than 0')
    return result


def parse_quantity(value: Any, name: str = 'quantity') -> int:
    """Positive whole number of units."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f'{name} must be a whole number')
    if value <= 0:
        raise InvalidInputError(f'{name} must be greater than 0')
    if value > MAX_QUANTITY:
        raise InvalidInputError(f'{name} cannot exceed {MAX_QUANTITY}')
    return value


def parse_money(value: Any, name: str, allow_zero: bool = False) -> Decimal:
    """Parse a money amount (number or numeric string) with at most 2 decimals."""
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f'{name} must be a number')
    try:
        amount = Decimal(str(value))
    except (TypeError, ValueError, decimal.InvalidOperation):
        raise InvalidInputError(f'{name} must be a number')
    if not amount.is_finite():
        raise InvalidInputError(f'{name} must be a number')
    if amount != amount.quantize(MONEY_QUANT):
        raise InvalidInputError(f'{name} must have at most 2 decimals')
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidInputError(f'{name} must be greater than 0')
    return amount.quantize(MONEY_QUANT)


def parse_sale_request(tenant_id: Any, lines: Any) -> SaleRequest:
    """
    Build a SaleRequest from raw lines ``[{product_id, quantity}, ...]``.

    Line order is preserved; the same product twice is an error.
    """
    tenant_id = parse_tenant_id(tenant_id)
    if not isinstance(lines, (list, tuple)) or not lines:
        raise InvalidInputError('At least one sale line is required')

    parsed: List[SaleLineRequest] = []
    seen = set()
    for raw in lines:
        if isinstance(raw, SaleLineRequest):
            raw = {'product_id': raw.product_id, 'quantity': raw.quantity}
        check_keys(raw, {'product_id', 'quantity'}, 'sale line')
        if 'product_id' not in raw or 'quantity' not in raw:
            raise InvalidInputError('Each sale line needs product_id and quantity')
        product_id = parse_id(raw['product_id'], 'product_id')
        quantity = parse_quantity(raw['quantity'])
        if product_id in seen:
            raise InvalidInputError(f'Product {product_id} appears more than once in the sale')
        seen.add(product_id)
        parsed.append(SaleLineRequest(product_id=product_id, quantity=quantity))

    return SaleRequest(tenant_id=tenant_id, lines=tuple(parsed))


def parse_restock_request(tenant_id: Any, product_id: Any, quantity: Any,
                          purchase_unit_cost: Any) -> RestockRequest:
    return RestockRequest(
        tenant_id=parse_tenant_id(tenant_id),
        product_id=parse_id(product_id, 'product_id'),
        quantity=parse_quantity(quantity),
        purchase_unit_cost=parse_money(purchase_unit_cost, 'purchase_unit_cost'),
    )


def parse_restock_body(tenant_id: Any, product_id: Any, body: Optional[Dict[str, Any]]) -> RestockRequest:
    """Restock request from an HTTP body ``{quantity, purchase_unit_cost}``."""
    body = body if body is not None else {}
    check_keys(body, {'quantity', 'purchase_unit_cost'}, 'restock request')
    return parse_restock_request(
        tenant_id, product_id, body.get('quantity'), body.get('purchase_unit_cost')
    )
