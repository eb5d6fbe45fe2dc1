"""Tests for applying and removing combo offers, and combo administration."""

from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.domain.errors import ValidationError, NotFound, Conflict, InsufficientStock, Forbidden
from storefront.domain.schemas import ComboCreate, ComboItemIn, ComboUpdate
from storefront.services.combo_service import ComboService
from storefront.utils.money import utc_now


class TestApplyCombo:
    def test_adds_combo_lines(self, carts, catalog):
        cart = carts.apply_combo(1, catalog.combo)
        by_product = {i.product_id: i for i in cart.items}
        assert by_product[catalog.shirt].discounted_unit_price == Decimal("450.00")
        assert by_product[catalog.mug].unit_price == Decimal("200.00")
        assert all(i.combo_id == catalog.combo for i in cart.items)
        assert cart.total_discounted_price == Decimal("650.00")
        assert [c.discount_applied for c in cart.applied_combos] == [Decimal("100.00")]

    def test_twice_is_a_conflict(self, carts, catalog):
        carts.apply_combo(1, catalog.combo)
        with pytest.raises(Conflict):
            carts.apply_combo(1, catalog.combo)
        cart = carts.get_cart(1)
        assert len(cart.items) == 2
        assert cart.total_discounted_price == Decimal("650.00")
        assert len(cart.applied_combos) == 1

    def test_quantity_multiplies_lines(self, carts, catalog):
        cart = carts.apply_combo(1, catalog.combo, quantity=3)
        assert sorted(i.quantity for i in cart.items) == [3, 3]
        assert cart.applied_combos[0].discount_applied == Decimal("100.00")

    def test_merges_into_existing_line(self, carts, catalog):
        carts.add_item(1, catalog.shirt, 1)
        cart = carts.apply_combo(1, catalog.combo)
        shirt = next(i for i in cart.items if i.product_id == catalog.shirt)
        assert shirt.quantity == 2
        assert len(cart.items) == 2

    def test_stock_checked_before_any_change(self, carts, catalog):
        with pytest.raises(InsufficientStock):
            carts.apply_combo(1, catalog.combo, quantity=11)
        cart = carts.get_cart(1)
        assert cart.items == []
        assert cart.applied_combos == []

    def test_expired_combo(self, carts, catalog):
        with pytest.raises(ValidationError):
            carts.apply_combo(1, catalog.expired_combo)

    def test_unknown_combo(self, carts, catalog):
        with pytest.raises(NotFound):
            carts.apply_combo(1, 999)

    def test_preview_includes_combo_discount(self, carts, catalog):
        carts.apply_combo(1, catalog.combo)
        preview = carts.billing_preview(1)
        summary = preview["pricing_summary"]
        assert summary["combo_discount"] == Decimal("100.00")
        assert summary["subtotal_after_discounts"] == Decimal("550.00")
        assert summary["gst"] == Decimal("99.00")
        assert summary["final_total"] == Decimal("649.00")
        assert preview["applied_offers"]["combos"][0]["title"] == "Shirt + Mug"


class TestRemoveCombo:
    def test_removes_lines_and_discount(self, carts, catalog):
        carts.apply_combo(1, catalog.combo)
        cart = carts.remove_combo(1, catalog.combo)
        assert cart.items == []
        assert cart.applied_combos == []
        assert cart.total_price == Decimal("0.00")

    def test_keeps_lines_added_separately(self, carts, catalog):
        carts.add_item(1, catalog.pen, 2)
        carts.apply_combo(1, catalog.combo)
        cart = carts.remove_combo(1, catalog.combo)
        assert [i.product_id for i in cart.items] == [catalog.pen]

    def test_not_applied(self, carts, catalog):
        with pytest.raises(NotFound):
            carts.remove_combo(1, catalog.combo)


class TestComboService:
    def test_original_price_from_catalog(self, db, catalog):
        combo = ComboService(db).create_combo(
            ComboCreate(
                title="Pens",
                items=[ComboItemIn(product_id=catalog.pen, quantity=4)],
                discount_price=Decimal("180"),
            ),
            created_by=100,
        )
        assert combo.original_price == Decimal("200.00")
        assert combo.discount_applied == Decimal("20.00")
        assert combo.created_by == 100

    def test_discount_above_original(self, db, catalog):
        with pytest.raises(ValidationError):
            ComboService(db).create_combo(
                ComboCreate(
                    title="Pens",
                    items=[ComboItemIn(product_id=catalog.pen, quantity=1)],
                    discount_price=Decimal("80"),
                )
            )

    def test_unknown_product(self, db, catalog):
        with pytest.raises(NotFound):
            ComboService(db).create_combo(
                ComboCreate(title="Ghost", items=[ComboItemIn(product_id=999)], discount_price=Decimal("1"))
            )

    def test_window_must_be_ordered(self, db, catalog):
        now = utc_now()
        with pytest.raises(ValidationError):
            ComboService(db).create_combo(
                ComboCreate(
                    title="Backwards",
                    items=[ComboItemIn(product_id=catalog.pen)],
                    discount_price=Decimal("40"),
                    start_date=now,
                    end_date=now - timedelta(days=1),
                )
            )

    def test_list_active_skips_expired(self, db, catalog):
        ids = [c.id for c in ComboService(db).list_active()]
        assert catalog.combo in ids
        assert catalog.expired_combo not in ids

    def test_update_allowed_fields(self, db, catalog):
        combo = ComboService(db).update_combo(catalog.combo, ComboUpdate(discount_price=Decimal("550"), is_active=False))
        assert combo.discount_price == Decimal("550.00")
        assert combo.is_active is False

    def test_update_discount_above_original(self, db, catalog):
        with pytest.raises(ValidationError):
            ComboService(db).update_combo(catalog.combo, ComboUpdate(discount_price=Decimal("900")))

    def test_delete_unused(self, db, catalog):
        svc = ComboService(db)
        svc.delete_combo(catalog.expired_combo)
        with pytest.raises(NotFound):
            svc.get_combo(catalog.expired_combo)

    def test_delete_applied_combo_refused(self, db, carts, catalog):
        carts.apply_combo(1, catalog.combo)
        with pytest.raises(Conflict):
            ComboService(db).delete_combo(catalog.combo)
        assert ComboService(db).get_combo(catalog.combo).title == "Shirt + Mug"

        carts.remove_combo(1, catalog.combo)
        ComboService(db).delete_combo(catalog.combo)

    def test_delete_tagged_line_refused(self, db, carts, catalog):
        carts.add_item(1, catalog.shirt, 1, combo_id=catalog.combo)
        with pytest.raises(Conflict):
            ComboService(db).delete_combo(catalog.combo)

    def test_seller_deletes_only_own_combo(self, db, catalog):
        svc = ComboService(db)
        with pytest.raises(Forbidden):
            svc.delete_combo(catalog.expired_combo, actor_id=100, actor_role="seller")

        own = svc.create_combo(
            ComboCreate(title="Pens", items=[ComboItemIn(product_id=catalog.pen, quantity=4)], discount_price=Decimal("180")),
            created_by=100,
        )
        svc.delete_combo(own.id, actor_id=100, actor_role="seller")
        with pytest.raises(NotFound):
            svc.get_combo(own.id)
