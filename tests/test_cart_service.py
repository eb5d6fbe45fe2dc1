"""Tests for cart line commands."""

from decimal import Decimal

import pytest

from storefront.domain.errors import (
    ValidationError,
    NotFound,
    Conflict,
    InsufficientStock,
    ColorMismatch,
    SizeUnavailable,
)
from storefront.repos.cart_repo import CartRepo
from storefront.services.lock_service import cart_lock_key


def _assert_consistent(cart):
    assert cart.total_items == sum(i.quantity for i in cart.items)
    assert cart.total_price == sum((i.total_price for i in cart.items), Decimal("0"))
    assert cart.total_discounted_price == sum((i.total_discounted_price for i in cart.items), Decimal("0"))
    assert cart.total_savings == cart.total_price - cart.total_discounted_price


class TestAddItem:
    def test_new_line_priced_from_product(self, carts, catalog):
        cart = carts.add_item(1, catalog.shirt, 2)
        assert len(cart.items) == 1
        item = cart.items[0]
        assert item.unit_price == Decimal("500.00")
        assert item.discounted_unit_price == Decimal("450.00")
        assert item.seller_id == 100
        assert cart.total_price == Decimal("1000.00")
        assert cart.total_discounted_price == Decimal("900.00")
        _assert_consistent(cart)

    def test_same_line_merges(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 1)
        cart = carts.add_item(1, catalog.shirt, 2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3
        _assert_consistent(cart)

    def test_version_bumped_per_command(self, carts, catalog):
        first = carts.add_item(1, catalog.shirt, 1).version
        second = carts.add_item(1, catalog.pen, 1).version
        assert second == first + 1

    def test_stock_boundary(self, carts, catalog):
        cart = carts.add_item(1, catalog.shirt, 10)
        assert cart.items[0].quantity == 10

    def test_stock_exceeded_leaves_cart_unchanged(self, carts, catalog):
        with pytest.raises(InsufficientStock) as exc:
            carts.add_item(1, catalog.shirt, 11)
        assert exc.value.max_available == 10
        assert carts.get_cart(1).items == []

    def test_merge_beyond_stock(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 8)
        with pytest.raises(InsufficientStock):
            carts.add_item(1, catalog.shirt, 3)
        assert carts.get_cart(1).items[0].quantity == 8

    def test_negative_quantity_decrements(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 3)
        cart = carts.add_item(1, catalog.shirt, -1)
        assert cart.items[0].quantity == 2
        _assert_consistent(cart)

    def test_decrement_to_zero_removes_line(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 2)
        cart = carts.add_item(1, catalog.shirt, -2)
        assert cart.items == []
        assert cart.total_items == 0
        assert cart.total_price == Decimal("0.00")

    def test_negative_quantity_for_new_line(self, carts, catalog):
        with pytest.raises(ValidationError):
            carts.add_item(1, catalog.shirt, -1)

    @pytest.mark.parametrize("quantity", [0, True, 1.5, "2"])
    def test_rejects_bad_quantity(self, carts, catalog, quantity):
        with pytest.raises(ValidationError):
            carts.add_item(1, catalog.shirt, quantity)

    def test_unknown_product(self, carts, catalog):
        with pytest.raises(NotFound):
            carts.add_item(1, 9999, 1)

    def test_inactive_product(self, carts, catalog):
        with pytest.raises(NotFound):
            carts.add_item(1, catalog.retired, 1)

    def test_unknown_variant(self, carts, catalog):
        with pytest.raises(NotFound):
            carts.add_item(1, catalog.phone, 1, variant_id=9999)

    def test_sized_variant(self, carts, catalog):
        cart = carts.add_item(1, catalog.phone, 1, variant_id=catalog.phone_black, selected_size="128GB")
        item = cart.items[0]
        assert item.unit_price == Decimal("20000.00")
        assert item.discounted_unit_price == Decimal("18000.00")
        assert item.stock == 5

    def test_sizes_are_separate_lines(self, carts, catalog):
        carts.add_item(1, catalog.phone, 1, variant_id=catalog.phone_black, selected_size="128GB")
        cart = carts.add_item(1, catalog.phone, 1, variant_id=catalog.phone_black, selected_size="256GB")
        assert len(cart.items) == 2

    def test_size_required(self, carts, catalog):
        with pytest.raises(SizeUnavailable):
            carts.add_item(1, catalog.phone, 1, variant_id=catalog.phone_black)

    def test_color_mismatch(self, carts, catalog):
        with pytest.raises(ColorMismatch):
            carts.add_item(1, catalog.tee, 1, variant_id=catalog.tee_red, selected_color="Green")

    def test_color_without_discount(self, carts, catalog):
        cart = carts.add_item(1, catalog.tee, 2, variant_id=catalog.tee_red, selected_color="red")
        assert cart.items[0].discounted_unit_price == Decimal("300.00")
        assert cart.total_savings == Decimal("0.00")

    def test_color_spellings_share_one_line(self, carts, catalog):
        carts.add_item(1, catalog.tee, 2, variant_id=catalog.tee_red, selected_color="red")
        cart = carts.add_item(1, catalog.tee, 1, variant_id=catalog.tee_red)
        cart = carts.add_item(1, catalog.tee, 1, variant_id=catalog.tee_red, selected_color="RED")
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 4
        assert cart.items[0].selected_color == "Red"

    def test_color_spellings_cannot_exceed_stock(self, carts, catalog):
        carts.add_item(1, catalog.tee, 5, variant_id=catalog.tee_red, selected_color="Red")
        with pytest.raises(InsufficientStock) as exc:
            carts.add_item(1, catalog.tee, 5, variant_id=catalog.tee_red)
        assert exc.value.max_available == 5
        cart = carts.get_cart(1)
        assert [(i.selected_color, i.quantity) for i in cart.items] == [("Red", 5)]

    def test_live_combo_flags_line(self, carts, catalog):
        cart = carts.add_item(1, catalog.shirt, 1, combo_id=catalog.combo)
        assert cart.items[0].combo_id == catalog.combo
        assert cart.items[0].is_combo_item is True

    def test_expired_combo_not_recorded(self, carts, catalog):
        cart = carts.add_item(1, catalog.shirt, 1, combo_id=catalog.expired_combo)
        assert cart.items[0].combo_id is None
        assert cart.items[0].is_combo_item is False


class TestUpdateAndRemove:
    def test_update_quantity(self, carts, catalog):
        item_id = carts.add_item(1, catalog.shirt, 1).items[0].id
        cart = carts.update_item_quantity(1, item_id, 4)
        assert cart.items[0].quantity == 4
        assert cart.total_discounted_price == Decimal("1800.00")

    def test_update_beyond_stock(self, carts, catalog):
        item_id = carts.add_item(1, catalog.shirt, 1).items[0].id
        with pytest.raises(InsufficientStock):
            carts.update_item_quantity(1, item_id, 11)

    def test_update_to_zero_rejected(self, carts, catalog):
        item_id = carts.add_item(1, catalog.shirt, 1).items[0].id
        with pytest.raises(ValidationError):
            carts.update_item_quantity(1, item_id, 0)

    def test_update_unknown_item(self, carts, catalog):
        with pytest.raises(NotFound):
            carts.update_item_quantity(1, 12345, 1)

    def test_remove_twice(self, carts, catalog):
        item_id = carts.add_item(1, catalog.shirt, 1).items[0].id
        cart = carts.remove_item(1, item_id)
        assert cart.items == []
        with pytest.raises(NotFound):
            carts.remove_item(1, item_id)

    def test_clear(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 2)
        carts.apply_coupon(1, "SAVE10")
        cart = carts.clear_cart(1)
        assert cart.items == []
        assert cart.coupon_id is None
        assert cart.total_items == 0
        assert cart.final_total == Decimal("0.00")

    def test_other_user_cannot_touch_item(self, carts, catalog):
        item_id = carts.add_item(1, catalog.shirt, 1).items[0].id
        with pytest.raises(NotFound):
            carts.remove_item(2, item_id)


class TestCourierAndPreview:
    def test_select_courier(self, carts, catalog):
        assert carts.select_courier(1, "standard").courier_service == "standard"

    def test_unknown_courier(self, carts, catalog):
        with pytest.raises(ValidationError):
            carts.select_courier(1, "drone")

    def test_billing_preview(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 1)
        carts.add_item(1, catalog.mug, 1)
        preview = carts.billing_preview(1)
        summary = preview["pricing_summary"]
        assert preview["cart_items"] == 2
        assert set(preview["items_by_seller"]) == {100, 101}
        assert summary["subtotal_after_discounts"] == Decimal("700.00")
        assert summary["gst"] == Decimal("126.00")
        assert summary["final_total"] == Decimal("826.00")
        assert carts.get_cart(1).final_total == Decimal("826.00")


class TestConcurrency:
    def test_lock_held_elsewhere(self, carts, catalog, redis_client):
        redis_client.set(cart_lock_key(1), "someone-else")
        with pytest.raises(Conflict):
            carts.add_item(1, catalog.shirt, 1)

    def test_stale_version_rejected(self, carts, catalog, monkeypatch):
        carts.add_item(1, catalog.shirt, 1)
        monkeypatch.setattr(CartRepo, "update_cart_version", lambda self, **kwargs: 0)
        with pytest.raises(Conflict):
            carts.add_item(1, catalog.shirt, 1)
        monkeypatch.undo()
        assert carts.get_cart(1).items[0].quantity == 1

    def test_version_guard(self, carts, catalog, db):
        cart = carts.get_cart(1)
        repo = CartRepo(db)
        assert repo.update_cart_version(cart_id=cart.id, old_version=cart.version + 5, new_data={"version": 99}) == 0
