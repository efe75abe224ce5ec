from concurrent.futures import ThreadPoolExecutor

import pytest

from storefront.core.errors import (
    AlreadyDelivered,
    ConsistencyError,
    InvalidInput,
    OrderNotFound,
    PersistenceError,
)
from storefront.schemas import Customer, OrderItem, OrderStatus

JANE = Customer(name="Jane", email="jane@example.com", phone="555-0100", address="1 Baker St")


def items(*pairs):
    return [OrderItem(product_id=pid, quantity=qty) for pid, qty in pairs]


class TestCreateOrder:
    def test_jane_scenario(self, orders, store):
        order = orders.create_order(JANE, items((1, 2), (3, 1)))
        assert order.total == pytest.approx(22.97)
        assert order.order_id == 1
        assert order.status == OrderStatus.PENDING
        assert order.delivered_at is None
        stored = store.orders.find_one({"orderId": 1})
        assert stored["total"] == pytest.approx(22.97)
        assert stored["customer"]["name"] == "Jane"
        assert "deliveredAt" not in stored

    def test_order_ids_increase_by_one(self, orders):
        ids = [orders.create_order(JANE, items((2, 1))).order_id for _ in range(4)]
        assert ids == [1, 2, 3, 4]

    def test_unknown_product_contributes_zero(self, orders):
        order = orders.create_order(JANE, items((1, 1), (999, 5)))
        assert order.total == pytest.approx(8.99)
        assert [i.product_id for i in order.items] == [1, 999]

    def test_empty_items_rejected(self, orders, store):
        with pytest.raises(InvalidInput):
            orders.create_order(JANE, [])
        assert store.orders.count_documents({}) == 0

    def test_total_is_fixed_at_creation(self, orders, store):
        order = orders.create_order(JANE, items((4, 1)))
        store.products.update_one({"productId": 4}, {"$set": {"price": 99.0}})
        assert orders.get_order(order.id).total == pytest.approx(24.99)

    def test_failed_insert_surfaces_persistence_error(self, orders, store, failing):
        store.orders = failing(store.orders, "insert_one")
        with pytest.raises(PersistenceError):
            orders.create_order(JANE, items((1, 1)))


class TestReadOrders:
    def test_list_newest_first(self, orders, clock):
        first = orders.create_order(JANE, items((1, 1)))
        clock.advance(minutes=5)
        second = orders.create_order(JANE, items((2, 1)))
        assert [o.order_id for o in orders.list_orders()] == [second.order_id, first.order_id]

    def test_get_by_record_identity(self, orders):
        order = orders.create_order(JANE, items((1, 1)))
        assert orders.get_order(order.id).order_id == order.order_id

    def test_get_by_order_number_is_invalid_input(self, orders):
        orders.create_order(JANE, items((1, 1)))
        with pytest.raises(InvalidInput):
            orders.get_order("1")

    def test_get_unknown(self, orders):
        with pytest.raises(OrderNotFound):
            orders.get_order("64b7f0c2a1b2c3d4e5f60718")


class TestMarkDelivered:
    def test_moves_order_between_collections(self, orders, store, clock):
        order = orders.create_order(JANE, items((1, 2), (3, 1)))
        clock.advance(hours=2)
        receipt = orders.mark_delivered(order.id)

        assert receipt.order_id == 1
        assert receipt.delivered_at == clock.now
        assert orders.list_orders() == []
        delivered = orders.list_delivered()
        assert len(delivered) == 1
        assert delivered[0].id == order.id
        assert delivered[0].status == OrderStatus.DELIVERED
        assert delivered[0].delivered_at >= delivered[0].created_at
        assert delivered[0].total == pytest.approx(22.97)

    def test_second_call_is_already_delivered(self, orders):
        order = orders.create_order(JANE, items((1, 1)))
        orders.mark_delivered(order.id)
        with pytest.raises(AlreadyDelivered) as exc_info:
            orders.mark_delivered(order.id)
        assert isinstance(exc_info.value, OrderNotFound)
        assert exc_info.value.order_id == order.order_id

    def test_unknown_order_is_plain_not_found(self, orders):
        with pytest.raises(OrderNotFound) as exc_info:
            orders.mark_delivered("64b7f0c2a1b2c3d4e5f60718")
        assert not isinstance(exc_info.value, AlreadyDelivered)

    def test_malformed_identity(self, orders):
        with pytest.raises(InvalidInput):
            orders.mark_delivered("order-1")

    def test_insert_failure_leaves_order_pending(self, orders, store, failing):
        order = orders.create_order(JANE, items((1, 1)))
        store.delivered = failing(store.delivered, "insert_one")
        with pytest.raises(PersistenceError):
            orders.mark_delivered(order.id)
        assert orders.get_order(order.id).status == OrderStatus.PENDING
        assert store.delivered.count_documents({}) == 0

    def test_delete_failure_is_compensated(self, orders, store, failing):
        order = orders.create_order(JANE, items((1, 1)))
        healthy = store.orders
        store.orders = failing(healthy, "delete_one")
        with pytest.raises(PersistenceError) as exc_info:
            orders.mark_delivered(order.id)
        assert not isinstance(exc_info.value, ConsistencyError)
        assert healthy.count_documents({}) == 1
        assert store.delivered.count_documents({}) == 0

        # the order can still be delivered once the store recovers
        store.orders = healthy
        assert orders.mark_delivered(order.id).order_id == order.order_id

    def test_failed_compensation_is_consistency_error(self, orders, store, failing):
        order = orders.create_order(JANE, items((1, 1)))
        healthy_orders, healthy_delivered = store.orders, store.delivered
        store.orders = failing(healthy_orders, "delete_one")
        store.delivered = failing(healthy_delivered, "delete_one")
        with pytest.raises(ConsistencyError) as exc_info:
            orders.mark_delivered(order.id)
        assert exc_info.value.record_id == order.id
        # duplicated, never lost
        assert healthy_orders.count_documents({}) == 1
        assert healthy_delivered.count_documents({}) == 1

    def test_active_record_removed_concurrently_keeps_delivered_copy(self, orders, store):
        order = orders.create_order(JANE, items((1, 1)))

        class NothingDeleted:
            deleted_count = 0

        class RacingOrders:
            """Another writer removes the pending record just before our delete."""

            def __init__(self, inner):
                self._inner = inner

            def __getattr__(self, name):
                return getattr(self._inner, name)

            def delete_one(self, *args, **kwargs):
                self._inner.delete_one(*args, **kwargs)
                return NothingDeleted()

        healthy = store.orders
        store.orders = RacingOrders(healthy)
        receipt = orders.mark_delivered(order.id)

        assert receipt.order_id == order.order_id
        assert healthy.count_documents({}) == 0
        assert store.delivered.count_documents({}) == 1
        assert orders.list_delivered()[0].id == order.id

    def test_concurrent_calls_deliver_once(self, orders, store):
        order = orders.create_order(JANE, items((1, 1)))

        def attempt(_):
            try:
                orders.mark_delivered(order.id)
                return "delivered"
            except AlreadyDelivered:
                return "already"

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count("delivered") == 1
        assert outcomes.count("already") == 7
        assert store.delivered.count_documents({}) == 1
        assert store.orders.count_documents({}) == 0

    def test_delivered_listing_newest_first(self, orders, clock):
        a = orders.create_order(JANE, items((1, 1)))
        b = orders.create_order(JANE, items((2, 1)))
        orders.mark_delivered(b.id)
        clock.advance(minutes=1)
        orders.mark_delivered(a.id)
        assert [o.order_id for o in orders.list_delivered()] == [a.order_id, b.order_id]

    def test_order_numbers_not_reused_after_delivery(self, orders):
        first = orders.create_order(JANE, items((1, 1)))
        orders.mark_delivered(first.id)
        assert orders.create_order(JANE, items((1, 1))).order_id == 2
