# storefront/services/order_service.py
from typing import Any, Callable, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderStatusHistoryModel
from storefront.domain.errors import (
    StorefrontError,
    ValidationError,
    InvalidStatus,
    InvalidTransition,
    NotFound,
    Conflict,
    Forbidden,
    InternalError,
)
from storefront.repos.order_repo import OrderRepo
from storefront.services.lock_service import LockService, order_lock_key
from storefront.utils.money import to_money, utc_now
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

FLOW = ("pending", "confirmed", "processing", "shipped", "delivered")
STATUSES = FLOW + ("cancelled", "returned")
TERMINAL = ("cancelled", "returned")
CANCELLABLE = ("pending", "confirmed")
STAFF_ROLES = ("admin", "seller")

TIMELINE_FOR = {
    "pending": "order_created",
    "confirmed": "order_confirmed",
    "processing": "processing_started",
    "shipped": "order_shipped",
    "delivered": "order_delivered",
    "cancelled": "order_cancelled",
    "returned": "order_returned",
}


def can_transition(current: str, new: str) -> bool:
    """Item level rule: forward along the flow, cancel early, return after delivery."""
    if current == new:
        return True
    if current in TERMINAL:
        return False
    if new == "cancelled":
        return current in CANCELLABLE
    if new == "returned":
        return current == "delivered"
    return FLOW.index(new) > FLOW.index(current)


def apply_status(order: OrderModel, status: str, notes: str, now) -> None:
    """Moves the order to ``status`` and applies its side effects."""
    order.status = status

    last = order.status_history[-1].status if order.status_history else None
    if last != status:
        order.status_history.append(OrderStatusHistoryModel(status=status, timestamp=now, notes=notes or ""))

    # first occurrence wins
    milestone = TIMELINE_FOR[status]
    if getattr(order, milestone) is None:
        setattr(order, milestone, now)

    if status == "delivered":
        if order.actual_delivery_date is None:
            order.actual_delivery_date = now
        if order.payment_status not in ("refund_pending", "refunded"):
            order.payment_status = "completed"
        if order.emi_enabled:
            order.emi_status = "active"
            order.emi_paid_installments = sum(1 for i in order.items if i.item_status == "delivered")
            pending = [inst.due_date for inst in order.installments if inst.status == "pending"]
            order.emi_next_payment_date = min(pending) if pending else None

    if status in TERMINAL and order.emi_enabled:
        order.emi_status = "failed"

    order.last_updated = now


class OrderService:
    """
    Order state machine and order queries.
    Every mutation runs under the per-order lock and bumps the order version.
    """

    def __init__(self, db: Session, lock_service: LockService):
        self.repo = OrderRepo(db)
        self.lock_service = lock_service

    # queries
    def get_order(self, order_id: str, user_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order or order.user_id != user_id:
            raise NotFound(f"Order {order_id} not found")
        return order

    def list_orders(self, user_id: int, status: str | None = None, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        if status is not None and status not in STATUSES:
            raise InvalidStatus(f"Invalid status. Allowed: {', '.join(STATUSES)}")
        if page < 1 or not 1 <= limit <= 100:
            raise ValidationError("page must be >= 1 and limit between 1 and 100")

        orders, total = self.repo.list_user_orders(user_id, status, (page - 1) * limit, limit)
        return {"orders": orders, "total": total, "page": page, "limit": limit}

    # commands
    def mutate(self, order_id: str, action: str, fn: Callable[[OrderModel], Any]) -> OrderModel:
        with self.lock_service.hold(order_lock_key(order_id)):
            order = self.repo.get_order(order_id)
            if not order:
                raise NotFound(f"Order {order_id} not found")
            old_version = order.version
            try:
                fn(order)
                rowcount = self.repo.update_order_version(
                    order_pk=order.id,
                    old_version=old_version,
                    new_data={"version": old_version + 1},
                )
                if rowcount == 0:
                    self.repo.rollback()
                    raise Conflict("Order was modified by another request")
                self.repo.commit()
            except StorefrontError:
                self.repo.rollback()
                raise
            except SQLAlchemyError as e:
                self.repo.rollback()
                logger.error(f"Failed to persist order {order_id} during {action}: {e}")
                raise InternalError("Failed to persist order") from e

        logger.info(f"Order {order_id}: {action}, new version: {old_version + 1}")
        return order

    def update_status(
        self,
        order_id: str,
        new_status: str,
        actor_id: int,
        actor_role: str,
        notes: str = "",
    ) -> OrderModel:
        """
        Use case: staff moves an order along.
        Sellers only move their own items, the order status follows the latest request.
        """
        if new_status not in STATUSES:
            raise InvalidStatus(f"Invalid status. Allowed: {', '.join(STATUSES)}")
        if actor_role not in STAFF_ROLES:
            raise Forbidden("Only admins and sellers can update order status")

        def update(order: OrderModel) -> None:
            if order.status in TERMINAL:
                raise InvalidTransition(f"Order is already {order.status}")
            if new_status == "cancelled" and order.status not in CANCELLABLE:
                raise InvalidTransition(f"Cannot cancel order with status: {order.status}")
            if new_status == "returned" and order.status != "delivered":
                raise InvalidTransition("Only delivered orders can be returned")

            if actor_role == "admin":
                items = list(order.items)
            else:
                items = [i for i in order.items if i.seller_id == actor_id]
                if not items:
                    raise Forbidden("Seller owns no items in this order")

            for item in items:
                if not can_transition(item.item_status, new_status):
                    raise InvalidTransition(f"Item {item.id} cannot move from {item.item_status} to {new_status}")

            for item in items:
                item.item_status = new_status
            apply_status(order, new_status, notes, utc_now())

        return self.mutate(order_id, f"status -> {new_status} by {actor_role} {actor_id}", update)

    def update_item_status(self, order_id: str, item_id: int, new_status: str, actor_id: int, actor_role: str) -> OrderModel:
        if new_status not in STATUSES:
            raise InvalidStatus(f"Invalid status. Allowed: {', '.join(STATUSES)}")
        if actor_role not in STAFF_ROLES:
            raise Forbidden("Only admins and sellers can update item status")

        def update(order: OrderModel) -> None:
            item = next((i for i in order.items if i.id == item_id), None)
            if not item:
                raise NotFound(f"Item {item_id} not found in order")
            if actor_role == "seller" and item.seller_id != actor_id:
                raise Forbidden("Item belongs to another seller")
            if not can_transition(item.item_status, new_status):
                raise InvalidTransition(f"Item {item_id} cannot move from {item.item_status} to {new_status}")
            item.item_status = new_status
            order.last_updated = utc_now()

        return self.mutate(order_id, f"item {item_id} -> {new_status}", update)

    def cancel_order(self, order_id: str, user_id: int, reason: str | None = None) -> OrderModel:
        def cancel(order: OrderModel) -> None:
            if order.user_id != user_id:
                raise NotFound(f"Order {order_id} not found")
            if order.status not in CANCELLABLE:
                raise InvalidTransition(f"Cannot cancel order with status: {order.status}")

            order.cancellation_reason = reason or "No reason provided"
            for item in order.items:
                item.item_status = "cancelled"
            apply_status(order, "cancelled", reason or "Cancelled by user", utc_now())

        return self.mutate(order_id, "cancelled by user", cancel)

    def return_order(self, order_id: str, user_id: int, reason: str) -> OrderModel:
        if not reason or not reason.strip():
            raise ValidationError("Return reason required")

        def return_(order: OrderModel) -> None:
            if order.user_id != user_id:
                raise NotFound(f"Order {order_id} not found")
            if order.status != "delivered":
                raise InvalidTransition("Only delivered orders can be returned")

            now = utc_now()
            order.return_reason = reason
            order.payment_status = "refunded"
            order.refund_amount = to_money(order.final_total)
            order.refund_date = now
            for item in order.items:
                item.item_status = "returned"
            apply_status(order, "returned", reason, now)

        return self.mutate(order_id, "returned by user", return_)
