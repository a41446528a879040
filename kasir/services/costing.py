"""
Cost accounting engine - pure weighted-average (HPP) arithmetic.

No session, no I/O. Money is ``Decimal`` quantized to cents (ROUND_HALF_UP)
after every computation, so repeated restocks never drift away from what the
database stores.
"""
from decimal import Decimal, ROUND_HALF_UP

from kasir.exceptions import InvalidInputError, InsufficientStockError

MONEY_QUANT = Decimal('0.01')


def quantize_money(value) -> Decimal:
    """Round a money amount to the stored precision (2 places, half-up)."""
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def compute_weighted_average_cost(current_stock: int, current_unit_cost: Decimal,
                                  added_quantity: int, purchase_unit_cost: Decimal) -> Decimal:
    """
    New unit cost after adding a purchased batch to existing stock.

        (current_stock * current_unit_cost + added_quantity * purchase_unit_cost)
        / (current_stock + added_quantity)

    The denominator is always positive because ``added_quantity > 0``; with
    ``current_stock == 0`` the result is exactly ``purchase_unit_cost``.

    Raises:
        InvalidInputError: if a precondition does not hold
    """
    if current_stock < 0:
        raise InvalidInputError('Current stock cannot be negative')
    if current_unit_cost < 0:
        raise InvalidInputError('Current unit cost cannot be negative')
    if added_quantity <= 0:
        raise InvalidInputError('Quantity must be greater than 0')
    if purchase_unit_cost <= 0:
        raise InvalidInputError('Purchase unit cost must be greater than 0')

    if current_stock == 0:
        return quantize_money(purchase_unit_cost)

    current_value = current_stock * Decimal(current_unit_cost)
    batch_value = added_quantity * Decimal(purchase_unit_cost)
    total_stock = current_stock + added_quantity
    return quantize_money((current_value + batch_value) / total_stock)


def validate_sale_line(requested_quantity: int, available_stock: int,
                       product_id=None, product_name=None) -> None:
    """Fail with InsufficientStockError when a line asks for more than is on hand."""
    if requested_quantity > available_stock:
        raise InsufficientStockError(
            product_id=product_id,
            product_name=product_name or f'product {product_id}',
            requested=requested_quantity,
            available=available_stock,
        )


def line_totals(quantity: int, sale_price: Decimal, unit_cost: Decimal):
    """Return (amount, cost) for one sale line."""
    return quantize_money(quantity * sale_price), quantize_money(quantity * unit_cost)


def profit_margin(sale_price: Decimal, unit_cost: Decimal) -> Decimal:
    """Margin over cost as a percentage; zero when the cost is unknown (0)."""
    if not unit_cost:
        return Decimal('0.00')
    return quantize_money((Decimal(sale_price) - Decimal(unit_cost)) / Decimal(unit_cost) * 100)
