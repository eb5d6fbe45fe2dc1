# storefront/services/checkout_service.py
import secrets
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.order import OrderModel, OrderItemModel, OrderStatusHistoryModel
from storefront.domain.errors import (
    StorefrontError,
    ValidationError,
    EmptyCart,
    NotFound,
    Conflict,
    InternalError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.cart_service import CartService, check_coupon, coupon_discount_for
from storefront.services.cart_totals import recalculate, summarize, empty_cart_columns
from storefront.services.lock_service import LockService, cart_lock_key
from storefront.services.notification_service import NotificationService
from storefront.utils.delivery import estimated_delivery_date
from storefront.utils.money import to_money, utc_now, ZERO
from storefront.utils.settings import EMI_MIN_ORDER_TOTAL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_METHODS = ("cod", "card", "emi", "upi", "netbanking", "wallet")


def generate_order_id(now: datetime) -> str:
    return f"ORD-{int(now.timestamp() * 1000)}-{secrets.randbelow(1_000_000):06d}"


def _emi_allowed(item) -> bool:
    # the variant flag wins when set, an unset flag means allowed
    if item.variant is not None and item.variant.emi is not None:
        return item.variant.emi
    return item.product.emi is not False


def _offers_snapshot(cart: CartModel, coupon_discount) -> Dict[str, Any]:
    # JSON column, amounts stored as strings
    coupon = None
    if cart.coupon_id is not None:
        coupon = {
            "coupon_id": cart.coupon_id,
            "code": cart.coupon_code,
            "discount_type": cart.coupon_discount_type,
            "discount_value": str(to_money(cart.coupon_discount_value)),
            "discount_applied": str(to_money(coupon_discount)),
        }
    return {
        "combos": [
            {
                "combo_id": c.combo_id,
                "title": c.combo.title if c.combo else None,
                "discount": str(to_money(c.discount_applied)),
            }
            for c in cart.applied_combos
        ],
        "coupon": coupon,
    }


class CheckoutService:
    """
    Use case: turn the user's cart into an order.
    The order insert and the cart reset share one transaction, guarded by the
    cart version and the unique checkout / idempotency keys.
    """

    def __init__(self, db: Session, lock_service: LockService):
        self.cart_repo = CartRepo(db)
        self.order_repo = OrderRepo(db)
        self.user_repo = UserRepo(db)
        self.catalog = CatalogRepo(db)
        self.carts = CartService(db, lock_service)
        self.lock_service = lock_service
        self.notification_service = NotificationService()

    def _existing_for_key(self, user_id: int, idempotency_key: str | None) -> OrderModel | None:
        if not idempotency_key:
            return None
        existing = self.order_repo.get_by_idempotency_key(idempotency_key)
        if existing and existing.user_id != user_id:
            raise Conflict("Idempotency key already used")
        return existing

    def _coupon_discount(self, cart: CartModel):
        if cart.coupon_id is None:
            return ZERO
        cart_total = self.carts.coupon_base_total(cart)
        coupon = check_coupon(self.catalog.get_coupon(cart.coupon_id), cart_total)
        return coupon_discount_for(coupon, cart_total)

    def create_order(self, user_id: int, payment_method: str, idempotency_key: str | None = None) -> Dict[str, Any]:
        """
        1. replay an order already placed with the same idempotency key
        2. validate cart, payment method, shipping address, EMI eligibility, coupon
        3. snapshot cart into an order
        4. insert order and reset cart in one transaction
        5. notify (async)
        """
        with self.lock_service.hold(cart_lock_key(user_id)):
            existing = self._existing_for_key(user_id, idempotency_key)
            if existing:
                logger.info(f"Checkout replay for key {idempotency_key}, returning order {existing.order_id}")
                return {"order_id": existing.order_id, "order": existing}

            cart = self.cart_repo.get_or_create_cart(user_id)
            try:
                order = self._place(cart, user_id, payment_method, idempotency_key)
            except StorefrontError:
                self.cart_repo.rollback()
                raise
            except IntegrityError as e:
                self.cart_repo.rollback()
                logger.warning(f"Duplicate checkout for cart {cart.id}: {e}")
                raise Conflict("Order already placed for this cart") from e
            except SQLAlchemyError as e:
                self.cart_repo.rollback()
                logger.error(f"Checkout failed for user {user_id}: {e}")
                raise InternalError("Failed to create order") from e

        logger.info(f"Order {order.order_id} created from cart {order.cart_id}, total {order.final_total}")

        try:
            self.notification_service.send_order_notification(user_id, order.order_id)
        except Exception as e:
            # order is already committed
            logger.warning(f"Failed to enqueue notification for order {order.order_id}: {e}")

        return {"order_id": order.order_id, "order": order}

    def _place(self, cart: CartModel, user_id: int, payment_method: str, idempotency_key: str | None) -> OrderModel:
        if not cart.items:
            raise EmptyCart("Cart is empty")

        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of {', '.join(PAYMENT_METHODS)}")

        user = self.user_repo.get_user(user_id)
        if not user:
            raise NotFound(f"User {user_id} not found")
        address = self.user_repo.get_address(user, user.selected_address_id)
        if not address:
            raise ValidationError("Shipping address not selected")

        recalculate(cart)
        coupon_discount = self._coupon_discount(cart)
        summary = summarize(cart, coupon_discount)

        if payment_method == "emi":
            blocked = [i.product_id for i in cart.items if not _emi_allowed(i)]
            if blocked:
                raise ValidationError(f"EMI not available for products {blocked}")
            if summary["final_total"] < EMI_MIN_ORDER_TOTAL:
                raise ValidationError(f"EMI requires an order total of at least {EMI_MIN_ORDER_TOTAL}")

        now = utc_now()
        old_version = cart.version

        order = OrderModel(
            order_id=generate_order_id(now),
            user_id=user_id,
            cart_id=cart.id,
            version=1,
            checkout_key=f"{cart.id}:{old_version}",
            idempotency_key=idempotency_key,
            shipping_address=address.snapshot(),
            courier_service=cart.courier_service or "regular",
            estimated_delivery_date=estimated_delivery_date(cart.courier_service or "regular", now),
            applied_offers=_offers_snapshot(cart, coupon_discount),
            payment_method=payment_method,
            payment_status="pending",
            status="pending",
            order_created=now,
            emi_enabled=payment_method == "emi",
            emi_status="pending",
            created_at=now,
            last_updated=now,
            **summary,
        )
        order.items = [
            OrderItemModel(
                product_id=i.product_id,
                variant_id=i.variant_id,
                selected_color=i.selected_color,
                selected_size=i.selected_size,
                unit_price=i.unit_price,
                discounted_unit_price=i.discounted_unit_price,
                quantity=i.quantity,
                total_price=i.total_price,
                total_discounted_price=i.total_discounted_price,
                seller_id=i.seller_id,
                item_status="pending",
            )
            for i in cart.items
        ]
        order.status_history = [OrderStatusHistoryModel(status="pending", timestamp=now, notes="Order placed")]
        self.order_repo.add_order(order)

        cart.items.clear()
        cart.applied_combos.clear()
        for column, value in empty_cart_columns().items():
            setattr(cart, column, value)

        rowcount = self.cart_repo.update_cart_version(
            cart_id=cart.id,
            old_version=old_version,
            new_data={"version": old_version + 1, "updated_at": now},
        )
        if rowcount == 0:
            raise Conflict("Cart was modified by another request")

        self.order_repo.commit()
        return order
