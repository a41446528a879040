"""
Ledger event bus.

Sale and restock publish events only after their transaction committed.
Delivery is best-effort: a failing subscriber is logged and skipped, it
never changes the outcome of the operation that emitted the event.
"""
import json
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from kasir.services.ledger_types import LedgerEvent

logger = logging.getLogger(__name__)

SALE_COMPLETED = 'SaleCompleted'
PRODUCT_STOCK_CHANGED = 'ProductStockChanged'
PRODUCT_RESTOCKED = 'ProductRestocked'

# Subscribe to this name to receive every event
ALL_EVENTS = '*'

Handler = Callable[[LedgerEvent], None]


class LedgerEventBus:
    """In-process publish/subscribe for ledger events."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: Handler) -> None:
        self._subscribers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: LedgerEvent) -> int:
        """Deliver to every matching subscriber; return how many succeeded."""
        delivered = 0
        for handler in list(self._subscribers.get(event.name, [])) + list(self._subscribers.get(ALL_EVENTS, [])):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(f"[EVENTS] Subscriber {handler!r} failed for {event.name}")
        return delivered


def publish_all(bus: Optional[LedgerEventBus], events: List[LedgerEvent]) -> None:
    """Publish a batch if a bus was injected."""
    if bus is None:
        return
    for event in events:
        bus.publish(event)


class RedisEventPublisher:
    """
    Forward ledger events to Redis pub/sub, one channel per tenant.

    Channel: ``{prefix}:tenant:{tenant_id}:events``. Dashboards subscribe to
    it for live stock and sales updates.
    """

    def __init__(self, cache_service):
        self.cache = cache_service

    def channel_for(self, tenant_id: str) -> str:
        return f"{self.cache.prefix}:tenant:{tenant_id}:events"

    def __call__(self, event: LedgerEvent) -> None:
        if not self.cache.is_available():
            return
        message = json.dumps(event.to_dict(), default=str)
        self.cache.client.publish(self.channel_for(event.tenant_id), message)


def invalidate_reports_on(bus: LedgerEventBus, cache_service) -> None:
    """Drop cached report rollups for a tenant whenever its ledger changes."""
    def _invalidate(event: LedgerEvent) -> None:
        cache_service.invalidate_module(event.tenant_id, 'reports')

    bus.subscribe(SALE_COMPLETED, _invalidate)
    bus.subscribe(PRODUCT_RESTOCKED, _invalidate)
