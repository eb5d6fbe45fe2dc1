from collections import defaultdict
from decimal import Decimal
from typing import Any, Callable, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel, CartComboModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.combo import ComboOfferModel
from storefront.data.models.coupon import CouponModel
from storefront.domain.errors import (
    StorefrontError,
    ValidationError,
    EmptyCart,
    NotFound,
    Conflict,
    InsufficientStock,
    InternalError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.cart_totals import (
    recalculate,
    refresh_line,
    summarize,
    billing_columns,
    empty_cart_columns,
)
from storefront.services.lock_service import LockService, cart_lock_key
from storefront.services.pricing_resolver import PricingResolver, price_of, default_source, effective_price
from storefront.utils.delivery import COURIER_DAYS
from storefront.utils.money import to_money, utc_now, as_utc, ZERO
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def combo_is_live(combo: ComboOfferModel, now=None) -> bool:
    if not combo.is_active:
        return False
    now = now or utc_now()
    if combo.start_date and as_utc(combo.start_date) > now:
        return False
    if combo.end_date and as_utc(combo.end_date) < now:
        return False
    return True


def coupon_discount_for(coupon: CouponModel, cart_total: Decimal) -> Decimal:
    """Percentage of the cart total or the flat value, never more than the total."""
    if coupon.discount_type == "percentage":
        discount = to_money(cart_total * Decimal(coupon.percentage_value) / 100)
    else:
        discount = to_money(coupon.flat_value)
    return min(discount, to_money(cart_total))


def check_coupon(coupon: CouponModel | None, cart_total: Decimal) -> CouponModel:
    if coupon is None:
        raise NotFound("Coupon not found")
    if not coupon.is_active:
        raise ValidationError("Coupon is not active")
    if as_utc(coupon.expiry_date) <= utc_now():
        raise ValidationError("Coupon has expired")
    if cart_total < to_money(coupon.min_order_value):
        raise ValidationError(f"Minimum order value for this coupon is {to_money(coupon.min_order_value)}")
    return coupon


def _line_key(item: CartItemModel) -> tuple:
    return (item.product_id, item.variant_id, item.selected_color or "", item.selected_size or "")


def _check_quantity(quantity, allow_negative: bool = False) -> None:
    # bool is an int subclass
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer")
    if quantity == 0 or (quantity < 0 and not allow_negative):
        raise ValidationError("Quantity must be a positive integer")


class CartService:
    """
    Use cases for the cart aggregate.
    commands (add, update, remove, combos, coupon, clear) run under the per-user
    lock, recalculate, and persist through the cart version check
    queries (get, billing preview) only read, apart from creating an empty cart
    """

    def __init__(self, db: Session, lock_service: LockService, pricing: PricingResolver | None = None):
        self.repo = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.lock_service = lock_service
        self.pricing = pricing or PricingResolver()

    # query
    def get_cart(self, user_id: int) -> CartModel:
        return self.repo.get_or_create_cart(user_id)

    # command plumbing
    def _mutate(self, user_id: int, action: str, fn: Callable[[CartModel], Any]) -> CartModel:
        with self.lock_service.hold(cart_lock_key(user_id)):
            cart = self.repo.get_or_create_cart(user_id)
            old_version = cart.version
            try:
                fn(cart)
                recalculate(cart)
                self._persist(cart, old_version)
            except StorefrontError:
                self.repo.rollback()
                raise
            except SQLAlchemyError as e:
                self.repo.rollback()
                logger.error(f"Failed to persist cart {cart.id} during {action}: {e}")
                raise InternalError("Failed to persist cart") from e

        logger.info(f"Cart {cart.id} of user {user_id}: {action}, new version: {old_version + 1}")
        return cart

    def _persist(self, cart: CartModel, old_version: int) -> None:
        # optimistic locking, e.g. update carts set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=old_version,
            new_data={
                "version": old_version + 1,
                "updated_at": utc_now(),
            },
        )
        if rowcount == 0:
            self.repo.rollback()
            raise Conflict("Cart was modified by another request")
        self.repo.commit()

    def _load_product(self, product_id: int, variant_id: int | None):
        product = self.catalog.get_product(product_id)
        if not product or not product.is_active:
            raise NotFound(f"Product {product_id} not found")
        variant = None
        if variant_id is not None:
            variant = self.catalog.get_variant(variant_id)
            if not variant:
                raise NotFound(f"Variant {variant_id} not found")
        return product, variant

    # commands
    def add_item(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        variant_id: int | None = None,
        combo_id: int | None = None,
        selected_color: str | None = None,
        selected_size: str | None = None,
    ) -> CartModel:
        # negative quantities only decrement an existing line
        _check_quantity(quantity, allow_negative=True)

        def add(cart: CartModel) -> None:
            product, variant = self._load_product(product_id, variant_id)

            combo_active = False
            if combo_id is not None:
                combo = self.catalog.get_combo(combo_id)
                combo_active = combo is not None and combo_is_live(combo)

            price = self.pricing.resolve(product, variant, selected_color, selected_size)
            # lines are keyed on the resolved color and size, not the raw selection
            key = (product.id, variant.id if variant else None, price.color or "", price.size or "")
            existing = next((i for i in cart.items if _line_key(i) == key), None)

            if existing:
                new_quantity = existing.quantity + quantity
                if new_quantity <= 0:
                    logger.info(f"Quantity of item {existing.id} dropped to {new_quantity}, removing line")
                    self.repo.delete_cart_item(cart, existing)
                    return
                if price.stock > 0 and new_quantity > price.stock:
                    raise InsufficientStock(
                        f"Only {price.stock} units of product {product.id} available",
                        max_available=price.stock,
                    )
                existing.quantity = new_quantity
                existing.stock = price.stock
                refresh_line(existing)
                return

            if quantity < 0:
                raise ValidationError("Quantity must be a positive integer")
            if price.stock > 0 and quantity > price.stock:
                raise InsufficientStock(
                    f"Only {price.stock} units of product {product.id} available",
                    max_available=price.stock,
                )

            item = CartItemModel(
                product_id=product.id,
                variant_id=variant.id if variant else None,
                combo_id=combo_id if combo_active else None,
                selected_color=price.color,
                selected_size=price.size,
                unit_price=price.unit_price,
                discounted_unit_price=price.discounted_unit_price,
                quantity=quantity,
                stock=price.stock,
                seller_id=product.seller_id,
                is_combo_item=combo_active,
                added_at=utc_now(),
            )
            refresh_line(item)
            self.repo.add_cart_item(cart, item)

        return self._mutate(user_id, f"add product {product_id} x{quantity}", add)

    def update_item_quantity(self, user_id: int, item_id: int, quantity: int) -> CartModel:
        _check_quantity(quantity)

        def update(cart: CartModel) -> None:
            item = self.repo.get_cart_item(cart, item_id)
            if not item:
                raise NotFound(f"Cart item {item_id} not found")
            if item.stock > 0 and quantity > item.stock:
                raise InsufficientStock(
                    f"Only {item.stock} units available for item {item_id}",
                    max_available=item.stock,
                )
            item.quantity = quantity
            refresh_line(item)

        return self._mutate(user_id, f"set item {item_id} quantity to {quantity}", update)

    def remove_item(self, user_id: int, item_id: int) -> CartModel:
        def remove(cart: CartModel) -> None:
            item = self.repo.get_cart_item(cart, item_id)
            if not item:
                raise NotFound(f"Cart item {item_id} not found")
            self.repo.delete_cart_item(cart, item)

        return self._mutate(user_id, f"remove item {item_id}", remove)

    def clear_cart(self, user_id: int) -> CartModel:
        def clear(cart: CartModel) -> None:
            cart.items.clear()
            cart.applied_combos.clear()
            for column, value in empty_cart_columns().items():
                setattr(cart, column, value)

        return self._mutate(user_id, "clear", clear)

    def apply_combo(self, user_id: int, combo_id: int, quantity: int = 1) -> CartModel:
        _check_quantity(quantity)

        def apply(cart: CartModel) -> None:
            combo = self.catalog.get_combo(combo_id)
            if not combo:
                raise NotFound(f"Combo {combo_id} not found")
            if not combo_is_live(combo):
                raise ValidationError("Combo is not active")
            if self.repo.get_applied_combo(cart, combo_id):
                raise Conflict("Combo already applied")

            # validate every product before touching the cart
            planned = []
            for combo_item in combo.items:
                product, variant = combo_item.product, combo_item.variant
                source = default_source(product, variant)
                price = price_of(source)
                line_quantity = (combo_item.quantity or 1) * quantity
                if price.stock > 0 and line_quantity > price.stock:
                    raise InsufficientStock(
                        f"Insufficient stock for {product.title}, available: {price.stock}",
                        max_available=price.stock,
                    )
                offer_price = to_money(combo_item.offer_price) if combo_item.offer_price else ZERO
                unit_price = offer_price if offer_price > 0 else effective_price(source)
                planned.append((product, variant, price, line_quantity, unit_price))

            for product, variant, price, line_quantity, unit_price in planned:
                variant_id = variant.id if variant else None
                existing = next(
                    (i for i in cart.items if i.product_id == product.id and i.variant_id == variant_id),
                    None,
                )
                if existing:
                    existing.quantity += line_quantity
                    refresh_line(existing)
                    continue

                item = CartItemModel(
                    product_id=product.id,
                    variant_id=variant_id,
                    combo_id=combo.id,
                    selected_color=price.color,
                    selected_size=price.size,
                    unit_price=unit_price,
                    discounted_unit_price=unit_price,
                    quantity=line_quantity,
                    stock=price.stock,
                    seller_id=product.seller_id,
                    is_combo_item=True,
                    added_at=utc_now(),
                )
                refresh_line(item)
                self.repo.add_cart_item(cart, item)

            cart.applied_combos.append(
                CartComboModel(combo_id=combo.id, discount_applied=to_money(combo.discount_applied))
            )

        return self._mutate(user_id, f"apply combo {combo_id}", apply)

    def remove_combo(self, user_id: int, combo_id: int) -> CartModel:
        def remove(cart: CartModel) -> None:
            applied = self.repo.get_applied_combo(cart, combo_id)
            if not applied:
                raise NotFound(f"Combo {combo_id} is not applied to the cart")
            cart.applied_combos.remove(applied)
            for item in [i for i in cart.items if i.combo_id == combo_id]:
                self.repo.delete_cart_item(cart, item)

        return self._mutate(user_id, f"remove combo {combo_id}", remove)

    def coupon_base_total(self, cart: CartModel) -> Decimal:
        """Cart total for coupon eligibility, re-read from catalog prices."""
        total = ZERO
        for item in cart.items:
            unit = self.pricing.line_effective_price(item.product, item.variant, item.selected_size)
            total += unit * item.quantity
        return to_money(total)

    def apply_coupon(self, user_id: int, code: str) -> CartModel:
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError("Coupon code required")

        def apply(cart: CartModel) -> None:
            if not cart.items:
                raise EmptyCart("Cart is empty")

            cart_total = self.coupon_base_total(cart)
            coupon = check_coupon(self.catalog.get_coupon_by_code(code), cart_total)
            discount = coupon_discount_for(coupon, cart_total)

            cart.coupon_id = coupon.id
            cart.coupon_code = coupon.code
            cart.coupon_discount_type = coupon.discount_type
            cart.coupon_discount_value = to_money(coupon.discount_value)
            cart.coupon_discount_applied = discount
            cart.coupon_original_amount = cart_total
            cart.coupon_final_amount = cart_total - discount

        return self._mutate(user_id, f"apply coupon {code}", apply)

    def remove_coupon(self, user_id: int) -> CartModel:
        def remove(cart: CartModel) -> None:
            if cart.coupon_id is None:
                raise NotFound("No coupon applied to the cart")
            cart.coupon_id = None
            cart.coupon_code = None
            cart.coupon_discount_type = None
            cart.coupon_discount_value = None
            cart.coupon_discount_applied = ZERO
            cart.coupon_original_amount = None
            cart.coupon_final_amount = None

        return self._mutate(user_id, "remove coupon", remove)

    def select_courier(self, user_id: int, courier_service: str) -> CartModel:
        if courier_service not in COURIER_DAYS:
            raise ValidationError(f"Courier service must be one of {', '.join(COURIER_DAYS)}")

        def select(cart: CartModel) -> None:
            cart.courier_service = courier_service

        return self._mutate(user_id, f"select courier {courier_service}", select)

    def billing_preview(self, user_id: int) -> Dict[str, Any]:
        """
        Use case: price summary before checkout.
        The summary is stored on the cart so checkout and the client see the same numbers.
        """
        def preview(cart: CartModel) -> None:
            for column, value in billing_columns(summarize(recalculate(cart))).items():
                setattr(cart, column, value)

        cart = self._mutate(user_id, "billing preview", preview)
        summary = summarize(cart)

        items_by_seller = defaultdict(list)
        for item in cart.items:
            items_by_seller[item.seller_id].append(item)

        return {
            "user_id": user_id,
            "cart_items": len(cart.items),
            "items_by_seller": dict(items_by_seller),
            "pricing_summary": summary,
            "applied_offers": applied_offers(cart),
            "courier_service": cart.courier_service,
        }


def applied_offers(cart: CartModel) -> Dict[str, Any]:
    return {
        "combos": [
            {
                "combo_id": c.combo_id,
                "title": c.combo.title if c.combo else None,
                "discount": to_money(c.discount_applied),
            }
            for c in cart.applied_combos
        ],
        "coupon": cart.applied_coupon,
    }
