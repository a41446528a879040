"""
Unit tests for the ledger event bus.
"""

from unittest.mock import MagicMock

from kasir.services.events import (
    LedgerEventBus, RedisEventPublisher, invalidate_reports_on, publish_all,
    SALE_COMPLETED, PRODUCT_RESTOCKED, PRODUCT_STOCK_CHANGED, ALL_EVENTS
)
from kasir.services.ledger_types import LedgerEvent


class TestLedgerEventBus:
    """Tests for LedgerEventBus."""

    def test_delivers_to_named_and_wildcard_subscribers(self):
        bus = LedgerEventBus()
        named, everything = [], []
        bus.subscribe(SALE_COMPLETED, named.append)
        bus.subscribe(ALL_EVENTS, everything.append)

        event = LedgerEvent(SALE_COMPLETED, 't1', {'sale_id': 1})
        assert bus.publish(event) == 2
        bus.publish(LedgerEvent(PRODUCT_STOCK_CHANGED, 't1'))

        assert named == [event]
        assert len(everything) == 2

    def test_failing_subscriber_does_not_stop_others(self):
        bus = LedgerEventBus()
        received = []

        def broken(event):
            raise RuntimeError('boom')

        bus.subscribe(SALE_COMPLETED, broken)
        bus.subscribe(SALE_COMPLETED, received.append)

        assert bus.publish(LedgerEvent(SALE_COMPLETED, 't1')) == 1
        assert len(received) == 1

    def test_unsubscribe(self):
        bus = LedgerEventBus()
        received = []
        bus.subscribe(SALE_COMPLETED, received.append)
        bus.unsubscribe(SALE_COMPLETED, received.append)
        bus.publish(LedgerEvent(SALE_COMPLETED, 't1'))
        assert received == []

    def test_publish_all_without_bus_is_noop(self):
        publish_all(None, [LedgerEvent(SALE_COMPLETED, 't1')])


class TestCacheIntegration:
    """Tests for the Redis-facing subscribers."""

    def test_reports_invalidated_on_sale_and_restock(self):
        bus = LedgerEventBus()
        cache = MagicMock()
        invalidate_reports_on(bus, cache)

        bus.publish(LedgerEvent(SALE_COMPLETED, 't1'))
        bus.publish(LedgerEvent(PRODUCT_RESTOCKED, 't2'))
        bus.publish(LedgerEvent(PRODUCT_STOCK_CHANGED, 't3'))

        assert [c.args for c in cache.invalidate_module.call_args_list] == [('t1', 'reports'), ('t2', 'reports')]

    def test_redis_publisher_uses_tenant_channel(self):
        cache = MagicMock()
        cache.prefix = 'kasir'
        cache.is_available.return_value = True
        publisher = RedisEventPublisher(cache)

        publisher(LedgerEvent(SALE_COMPLETED, 't1', {'sale_id': 3}))

        channel, message = cache.client.publish.call_args.args
        assert channel == 'kasir:tenant:t1:events'
        assert '"sale_id": 3' in message

    def test_redis_publisher_skips_when_cache_down(self):
        cache = MagicMock()
        cache.is_available.return_value = False
        RedisEventPublisher(cache)(LedgerEvent(SALE_COMPLETED, 't1'))
        cache.client.publish.assert_not_called()
