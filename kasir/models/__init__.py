"""Models package - exports all SQLAlchemy models."""
from sqlalchemy import event

from kasir.exceptions import HistoryImmutableError

from kasir.models.tenant import Tenant
from kasir.models.category import Category
from kasir.models.product import Product
from kasir.models.sale import Sale
from kasir.models.sale_line import SaleLine
from kasir.models.restock import Restock

__all__ = [
    'Tenant', 'Category', 'Product',
    'Sale', 'SaleLine', 'Restock',
]


def _reject_history_change(mapper, connection, target):
    raise HistoryImmutableError(target)


# History rows are inserted once; updates and deletes are refused at flush
for _history_model in (Sale, SaleLine, Restock):
    event.listen(_history_model, 'before_update', _reject_history_change)
    event.listen(_history_model, 'before_delete', _reject_history_change)
