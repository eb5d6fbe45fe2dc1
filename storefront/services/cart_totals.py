# storefront/services/cart_totals.py
from decimal import Decimal

from storefront.data.models.cart import CartModel
from storefront.utils.money import to_money, ZERO
from storefront.utils.settings import GST_RATE, FREE_DELIVERY_THRESHOLD, DELIVERY_CHARGE


def refresh_line(item) -> None:
    item.total_price = to_money(Decimal(item.unit_price) * item.quantity)
    item.total_discounted_price = to_money(Decimal(item.discounted_unit_price) * item.quantity)


def recalculate(cart: CartModel) -> CartModel:
    """Only writer of the cart aggregates. Line totals are refreshed first."""
    total_items = 0
    total_price = ZERO
    total_discounted = ZERO

    for item in cart.items:
        refresh_line(item)
        total_items += item.quantity
        total_price += item.total_price
        total_discounted += item.total_discounted_price

    cart.total_items = total_items
    cart.total_price = to_money(total_price)
    cart.total_discounted_price = to_money(total_discounted)
    cart.total_savings = to_money(total_price - total_discounted)
    return cart


def summarize(cart: CartModel, coupon_discount: Decimal | None = None) -> dict:
    """
    Billing summary of an already recalculated cart.
    coupon_discount overrides the stored coupon discount (checkout revalidation)
    """
    subtotal = to_money(cart.total_price)
    item_discount = to_money(cart.total_savings)
    combo_discount = to_money(sum((to_money(c.discount_applied) for c in cart.applied_combos), ZERO))
    if coupon_discount is None:
        coupon_discount = cart.coupon_discount_applied if cart.coupon_id is not None else ZERO
    coupon_discount = to_money(coupon_discount)

    after_discounts = max(to_money(cart.total_discounted_price) - combo_discount - coupon_discount, ZERO)
    gst = to_money(after_discounts * GST_RATE)
    delivery_charge = ZERO if after_discounts > FREE_DELIVERY_THRESHOLD else to_money(DELIVERY_CHARGE)
    if not cart.items:
        delivery_charge = ZERO

    return {
        "subtotal": subtotal,
        "item_discount": item_discount,
        "combo_discount": combo_discount,
        "coupon_discount": coupon_discount,
        "subtotal_after_discounts": after_discounts,
        "gst": gst,
        "delivery_charge": delivery_charge,
        "final_total": to_money(after_discounts + gst + delivery_charge),
    }


def billing_columns(summary: dict) -> dict:
    """Cart columns that mirror a billing summary."""
    return {
        "subtotal": summary["subtotal"],
        "combo_discount": summary["combo_discount"],
        "coupon_discount": summary["coupon_discount"],
        "gst": summary["gst"],
        "delivery_charge": summary["delivery_charge"],
        "final_total": summary["final_total"],
    }


def empty_cart_columns() -> dict:
    """Column values of a cleared cart."""
    return {
        "total_items": 0,
        "total_price": ZERO,
        "total_discounted_price": ZERO,
        "total_savings": ZERO,
        "coupon_id": None,
        "coupon_code": None,
        "coupon_discount_type": None,
        "coupon_discount_value": None,
        "coupon_discount_applied": ZERO,
        "coupon_original_amount": None,
        "coupon_final_amount": None,
        "subtotal": ZERO,
        "combo_discount": ZERO,
        "coupon_discount": ZERO,
        "gst": ZERO,
        "delivery_charge": ZERO,
        "final_total": ZERO,
    }
