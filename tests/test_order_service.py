"""Tests for the order state machine."""

from decimal import Decimal

import pytest

from storefront.domain.errors import (
    ValidationError,
    InvalidStatus,
    InvalidTransition,
    NotFound,
    Conflict,
    Forbidden,
)
from storefront.services.lock_service import order_lock_key
from storefront.services.order_service import can_transition


class TestCanTransition:
    @pytest.mark.parametrize(
        "current,new",
        [
            ("pending", "confirmed"),
            ("pending", "shipped"),
            ("confirmed", "cancelled"),
            ("delivered", "returned"),
            ("shipped", "shipped"),
        ],
    )
    def test_allowed(self, current, new):
        assert can_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            ("shipped", "confirmed"),
            ("processing", "cancelled"),
            ("shipped", "returned"),
            ("cancelled", "pending"),
            ("returned", "delivered"),
        ],
    )
    def test_rejected(self, current, new):
        assert not can_transition(current, new)


class TestUpdateStatus:
    def test_admin_moves_all_items(self, orders, place_order):
        order_id = place_order()
        order = orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin")
        assert order.status == "confirmed"
        assert {i.item_status for i in order.items} == {"confirmed"}
        assert order.order_confirmed is not None

    def test_repeated_status_recorded_once(self, orders, place_order):
        order_id = place_order()
        first = orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin")
        confirmed_at = first.order_confirmed
        order = orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin")
        assert [h.status for h in order.status_history] == ["pending", "confirmed"]
        assert order.order_confirmed == confirmed_at

    def test_seller_moves_own_items(self, orders, place_order, catalog):
        order_id = place_order()
        order = orders.update_status(order_id, "processing", actor_id=100, actor_role="seller")
        statuses = {i.product_id: i.item_status for i in order.items}
        assert statuses[catalog.shirt] == "processing"
        assert statuses[catalog.mug] == "pending"
        assert order.status == "processing"

    def test_seller_without_items(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(Forbidden):
            orders.update_status(order_id, "processing", actor_id=999, actor_role="seller")

    def test_customer_role(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(Forbidden):
            orders.update_status(order_id, "confirmed", actor_id=1, actor_role="customer")

    def test_unknown_status(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(InvalidStatus):
            orders.update_status(order_id, "teleported", actor_id=1, actor_role="admin")

    def test_items_never_move_backwards(self, orders, place_order):
        order_id = place_order()
        orders.update_status(order_id, "shipped", actor_id=1, actor_role="admin")
        with pytest.raises(InvalidTransition):
            orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin")
        assert orders.get_order(order_id, 1).status == "shipped"

    def test_terminal_order(self, orders, place_order):
        order_id = place_order()
        orders.cancel_order(order_id, 1)
        with pytest.raises(InvalidTransition):
            orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin")

    def test_delivered_side_effects(self, orders, place_order):
        order_id = place_order()
        order = orders.update_status(order_id, "delivered", actor_id=1, actor_role="admin")
        assert order.actual_delivery_date is not None
        assert order.order_delivered is not None
        assert order.payment_status == "completed"
        assert [h.status for h in order.status_history] == ["pending", "delivered"]

    def test_unknown_order(self, orders, catalog):
        with pytest.raises(NotFound):
            orders.update_status("ORD-0-000000", "confirmed", actor_id=1, actor_role="admin")

    def test_lock_held_elsewhere(self, orders, place_order, redis_client):
        order_id = place_order()
        redis_client.set(order_lock_key(order_id), "someone-else")
        with pytest.raises(Conflict):
            orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin")

    def test_version_bumped(self, orders, place_order):
        order_id = place_order()
        assert orders.update_status(order_id, "confirmed", actor_id=1, actor_role="admin").version == 2


class TestItemStatus:
    def test_seller_updates_own_item(self, orders, place_order, catalog):
        order_id = place_order()
        shirt = next(i for i in orders.get_order(order_id, 1).items if i.product_id == catalog.shirt)
        order = orders.update_item_status(order_id, shirt.id, "shipped", actor_id=100, actor_role="seller")
        assert next(i for i in order.items if i.id == shirt.id).item_status == "shipped"
        assert order.status == "pending"

    def test_seller_cannot_touch_other_item(self, orders, place_order, catalog):
        order_id = place_order()
        mug = next(i for i in orders.get_order(order_id, 1).items if i.product_id == catalog.mug)
        with pytest.raises(Forbidden):
            orders.update_item_status(order_id, mug.id, "shipped", actor_id=100, actor_role="seller")

    def test_unknown_item(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(NotFound):
            orders.update_item_status(order_id, 9999, "shipped", actor_id=1, actor_role="admin")


class TestCancel:
    def test_cancel_pending(self, orders, place_order):
        order_id = place_order()
        order = orders.cancel_order(order_id, 1)
        assert order.status == "cancelled"
        assert order.cancellation_reason == "No reason provided"
        assert {i.item_status for i in order.items} == {"cancelled"}
        assert order.status_history[-1].status == "cancelled"
        assert order.order_cancelled is not None

    def test_cancel_twice(self, orders, place_order):
        order_id = place_order()
        orders.cancel_order(order_id, 1, "changed my mind")
        with pytest.raises(InvalidTransition):
            orders.cancel_order(order_id, 1)

    def test_cancel_after_shipping(self, orders, place_order):
        order_id = place_order()
        orders.update_status(order_id, "shipped", actor_id=1, actor_role="admin")
        with pytest.raises(InvalidTransition):
            orders.cancel_order(order_id, 1)

    def test_cancel_someone_elses_order(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(NotFound):
            orders.cancel_order(order_id, 2)


class TestReturn:
    def test_return_delivered(self, orders, place_order):
        order_id = place_order()
        orders.update_status(order_id, "delivered", actor_id=1, actor_role="admin")
        order = orders.return_order(order_id, 1, "Wrong size")
        assert order.status == "returned"
        assert order.return_reason == "Wrong size"
        assert order.payment_status == "refunded"
        assert order.refund_amount == order.final_total
        assert {i.item_status for i in order.items} == {"returned"}

    def test_return_before_delivery(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(InvalidTransition):
            orders.return_order(order_id, 1, "Wrong size")

    def test_reason_required(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(ValidationError):
            orders.return_order(order_id, 1, "  ")


class TestQueries:
    def test_get_someone_elses_order(self, orders, place_order):
        order_id = place_order()
        with pytest.raises(NotFound):
            orders.get_order(order_id, 2)

    def test_list_with_paging(self, orders, place_order, catalog):
        first = place_order()
        second = place_order(lines=[(catalog.pen, 1, {})])
        orders.cancel_order(first, 1)

        page = orders.list_orders(1, page=1, limit=1)
        assert page["total"] == 2
        assert len(page["orders"]) == 1

        cancelled = orders.list_orders(1, status="cancelled")
        assert [o.order_id for o in cancelled["orders"]] == [first]
        assert second not in [o.order_id for o in cancelled["orders"]]

    def test_list_unknown_status(self, orders, catalog):
        with pytest.raises(InvalidStatus):
            orders.list_orders(1, status="lost")

    def test_price_summary_property(self, orders, place_order):
        order = orders.get_order(place_order(), 1)
        assert order.price_summary["final_total"] == Decimal("826.00")
        assert set(order.timeline) >= {"order_created", "order_delivered"}
