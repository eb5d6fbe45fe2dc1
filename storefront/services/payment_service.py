# storefront/services/payment_service.py
import json
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, EmiInstallmentModel
from storefront.domain.errors import ValidationError, NotFound, Conflict, Unauthorized
from storefront.repos.order_repo import OrderRepo
from storefront.services.checkout_service import PAYMENT_METHODS
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService, apply_status
from storefront.services.payment_gateway import RazorpayGateway
from storefront.utils.money import to_money, utc_now, ZERO
from storefront.utils.settings import EMI_MIN_ORDER_TOTAL, PAYMENT_CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ONLINE_METHODS = ("card", "emi", "upi", "netbanking", "wallet")
# a payment in any of these states was captured at the gateway
PAID_STATUSES = ("completed", "refund_pending", "refunded")
EMI_INTEREST_RATES = {3: 0, 6: 2, 9: 3, 12: 4}
INSTALLMENT_INTERVAL_DAYS = 30


def calculate_emi(principal: Decimal, tenure: int) -> Dict[str, Decimal]:
    """Reducing-balance EMI on the yearly rate for ``tenure``."""
    if tenure not in EMI_INTEREST_RATES:
        raise ValidationError(f"Invalid tenure. Allowed: {', '.join(str(t) for t in EMI_INTEREST_RATES)}")

    principal = Decimal(principal)
    monthly_rate = Decimal(EMI_INTEREST_RATES[tenure]) / 100 / 12
    if monthly_rate == 0:
        emi = principal / tenure
    else:
        growth = (1 + monthly_rate) ** tenure
        emi = principal * monthly_rate * growth / (growth - 1)

    total = to_money(emi * tenure)
    return {
        "monthly_amount": to_money(emi),
        "total_amount": total,
        "interest_amount": to_money(total - principal),
        "interest_rate": Decimal(EMI_INTEREST_RATES[tenure]),
    }


def build_installments(total: Decimal, monthly: Decimal, tenure: int, start) -> list[EmiInstallmentModel]:
    installments = []
    for n in range(1, tenure + 1):
        # the last installment absorbs rounding
        amount = monthly if n < tenure else to_money(total - monthly * (tenure - 1))
        installments.append(
            EmiInstallmentModel(
                installment_no=n,
                amount=amount,
                due_date=start + timedelta(days=INSTALLMENT_INTERVAL_DAYS * n),
                status="pending",
            )
        )
    return installments


def mark_paid(order: OrderModel, payment_id: str, signature: str | None, method: str | None, now) -> None:
    if method in PAYMENT_METHODS:
        order.payment_method = method

    if method == "emi":
        order.emi_enabled = True
        order.emi_status = "active"
    elif order.emi_enabled:
        order.emi_enabled = False
        order.emi_status = "failed"

    order.payment_status = "completed"
    order.gateway_payment_id = payment_id
    if signature:
        order.gateway_signature = signature
    order.payment_date = now
    if order.payment_completed is None:
        order.payment_completed = now

    if order.status == "pending":
        apply_status(order, "confirmed", f"Order confirmed. Payment via {(method or order.payment_method).upper()}", now)
    order.last_updated = now


class PaymentService:
    """
    Payment write-back for orders.
    Gateway calls go through RazorpayGateway, order writes through OrderService.mutate.
    """

    def __init__(self, db: Session, lock_service: LockService, gateway: RazorpayGateway):
        self.repo = OrderRepo(db)
        self.orders = OrderService(db, lock_service)
        self.gateway = gateway

    @staticmethod
    def _owned(order: OrderModel, user_id: int) -> None:
        if order.user_id != user_id:
            raise NotFound(f"Order {order.order_id} not found")

    def _checkout_payload(self, order: OrderModel) -> Dict[str, Any]:
        return {
            "order_id": order.order_id,
            "gateway_order_id": order.gateway_order_id,
            "amount": to_money(order.final_total),
            "currency": PAYMENT_CURRENCY,
            "key": self.gateway.key_id,
        }

    def initiate_payment(self, order_id: str, user_id: int) -> Dict[str, Any]:
        def initiate(order: OrderModel) -> None:
            self._owned(order, user_id)
            if order.payment_status in PAID_STATUSES:
                raise Conflict("Payment already completed for this order")
            if order.payment_method not in ONLINE_METHODS:
                raise ValidationError("This order is not configured for online payment")
            # one gateway order per order, retries reuse it
            if order.gateway_order_id:
                return
            gateway_order = self.gateway.create_order(order.final_total, order.order_id)
            order.gateway_order_id = gateway_order["id"]
            order.last_updated = utc_now()

        order = self.orders.mutate(order_id, "initiate payment", initiate)
        return self._checkout_payload(order)

    def initiate_emi_payment(self, order_id: str, user_id: int, tenure: int) -> Dict[str, Any]:
        if tenure not in EMI_INTEREST_RATES:
            raise ValidationError(f"Invalid tenure. Allowed: {', '.join(str(t) for t in EMI_INTEREST_RATES)}")

        def initiate(order: OrderModel) -> None:
            self._owned(order, user_id)
            if order.payment_status in PAID_STATUSES:
                raise Conflict("Payment already completed for this order")
            if order.payment_method == "cod":
                raise ValidationError("Order is set to Cash on Delivery")
            if to_money(order.final_total) < EMI_MIN_ORDER_TOTAL:
                raise ValidationError(f"EMI requires an order total of at least {EMI_MIN_ORDER_TOTAL}")

            emi = calculate_emi(to_money(order.final_total), tenure)
            if not order.gateway_order_id or order.emi_tenure != tenure:
                gateway_order = self.gateway.create_order(
                    order.final_total,
                    order.order_id,
                    notes={"tenure": tenure, "monthlyAmount": str(emi["monthly_amount"])},
                )
                order.gateway_order_id = gateway_order["id"]

            now = utc_now()
            order.payment_method = "emi"
            order.emi_enabled = True
            order.emi_tenure = tenure
            order.emi_monthly_amount = emi["monthly_amount"]
            order.emi_total_amount = emi["total_amount"]
            order.emi_interest_rate = emi["interest_rate"]
            order.emi_status = "pending"
            order.emi_paid_installments = 0
            order.installments.clear()
            order.installments.extend(build_installments(emi["total_amount"], emi["monthly_amount"], tenure, now))
            order.emi_next_payment_date = order.installments[0].due_date
            order.last_updated = now

        order = self.orders.mutate(order_id, f"initiate EMI x{tenure}", initiate)
        return {
            **self._checkout_payload(order),
            "emi": {
                "tenure": order.emi_tenure,
                "monthly_amount": to_money(order.emi_monthly_amount),
                "total_amount": to_money(order.emi_total_amount),
                "interest_rate": order.emi_interest_rate,
            },
        }

    def verify_payment(
        self,
        order_id: str,
        user_id: int,
        gateway_order_id: str,
        payment_id: str,
        signature: str,
    ) -> OrderModel:
        if not gateway_order_id or not payment_id or not signature:
            raise ValidationError("Payment details missing")
        if not self.gateway.verify_signature(gateway_order_id, payment_id, signature):
            logger.warning(f"Invalid payment signature for order {order_id}")
            raise Unauthorized("Invalid payment signature")

        def verify(order: OrderModel) -> None:
            self._owned(order, user_id)
            if order.gateway_order_id and order.gateway_order_id != gateway_order_id:
                raise ValidationError("Payment does not belong to this order")
            if order.payment_status in PAID_STATUSES:
                if order.gateway_payment_id == payment_id:
                    return
                raise Conflict("Order already paid with another payment")

            details = self.gateway.fetch_payment(payment_id)
            order.gateway_order_id = gateway_order_id
            mark_paid(order, payment_id, signature, details.get("method"), utc_now())

        return self.orders.mutate(order_id, f"verify payment {payment_id}", verify)

    def refund(self, order_id: str, user_id: int, amount=None) -> Dict[str, Any]:
        """
        Refund in three steps, each retry-safe:
        - reserve: mark the order refund_pending and commit
        - gateway: reuse a refund already issued under the order id, else issue one
        - settle: record the refund and cancel the order
        A retry after a failed settle finds the pending marker and the issued refund.
        """

        def reserve(order: OrderModel) -> None:
            self._owned(order, user_id)
            if order.payment_method not in ONLINE_METHODS or not order.gateway_payment_id:
                raise ValidationError("No gateway payment to refund")
            if order.payment_status == "refund_pending":
                return
            if order.payment_status == "refunded":
                raise Conflict("Payment already refunded")
            if order.payment_status != "completed":
                raise ValidationError("Cannot refund incomplete payment")

            refund_amount = to_money(amount) if amount is not None else to_money(order.final_total)
            if refund_amount <= ZERO or refund_amount > to_money(order.final_total):
                raise ValidationError("Refund amount must be positive and at most the order total")
            order.payment_status = "refund_pending"
            order.refund_amount = refund_amount
            order.last_updated = utc_now()

        order = self.orders.mutate(order_id, "reserve refund", reserve)
        payment_id, refund_amount = order.gateway_payment_id, to_money(order.refund_amount)

        result = self.gateway.find_refund(payment_id, order.order_id)
        if result is None:
            result = self.gateway.refund(payment_id, refund_amount, receipt=order.order_id)
        else:
            logger.info(f"Refund {result.get('id')} already issued for order {order.order_id}")

        def settle(order: OrderModel) -> None:
            if order.payment_status != "refund_pending":
                return
            now = utc_now()
            order.payment_status = "refunded"
            order.refund_id = result.get("id")
            order.refund_date = now
            if order.status not in ("returned", "cancelled"):
                apply_status(order, "cancelled", "Refund processed", now)
            order.last_updated = now

        order = self.orders.mutate(order_id, "settle refund", settle)
        return {
            "order_id": order.order_id,
            "refund_id": order.refund_id,
            "amount": to_money(order.refund_amount),
            "status": result.get("status"),
        }

    def get_payment_status(self, order_id: str, user_id: int) -> Dict[str, Any]:
        order = self.orders.get_order(order_id, user_id)
        status = {
            "order_id": order.order_id,
            "payment_status": order.payment_status,
            "method": order.payment_method,
            "transaction_id": order.gateway_payment_id,
            "payment_date": order.payment_date,
        }
        if order.emi_enabled:
            status["emi"] = {
                "tenure": order.emi_tenure,
                "monthly_amount": order.emi_monthly_amount,
                "total_amount": order.emi_total_amount,
                "status": order.emi_status,
                "paid_installments": order.emi_paid_installments,
                "next_payment_date": order.emi_next_payment_date,
            }
        return status

    def _webhook_order(self, payload: dict) -> OrderModel | None:
        entities = payload.get("payload") or {}
        payment = (entities.get("payment") or {}).get("entity") or {}
        reference = (payment.get("notes") or {}).get("orderId") or ((entities.get("order") or {}).get("entity") or {}).get("receipt")
        order = self.repo.get_order(reference) if reference else None
        if order is None and payment.get("order_id"):
            order = self.repo.get_by_gateway_order_id(payment["order_id"])
        return order

    def handle_webhook(self, body: bytes, signature: str | None, event_id: str | None = None) -> Dict[str, Any]:
        """
        Use case: gateway event delivery, at least once.
        Events are recorded by id, a replayed event changes nothing.
        """
        if not self.gateway.verify_webhook(body, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise Unauthorized("Invalid webhook signature")

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise ValidationError("Malformed webhook body") from e

        event = payload.get("event")
        event_id = event_id or payload.get("id")
        if not event or not event_id:
            raise ValidationError("Webhook event and event id required")

        order = self._webhook_order(payload) if event == "payment.captured" else None
        if order is None:
            return self._record_event(event_id, event)

        outcome = {"event_id": event_id, "event": event}

        def capture(order: OrderModel) -> None:
            if self.repo.webhook_event_seen(event_id):
                outcome["status"] = "duplicate"
                return
            self.repo.record_webhook_event(event_id, event, order.order_id)
            if order.payment_status in PAID_STATUSES:
                outcome["status"] = "already_paid"
                return
            payment = payload["payload"]["payment"]["entity"]
            mark_paid(order, payment.get("id"), None, payment.get("method"), utc_now())
            outcome["status"] = "processed"

        self.orders.mutate(order.order_id, f"webhook {event} {event_id}", capture)
        logger.info(f"Webhook {event_id} ({event}) for order {order.order_id}: {outcome['status']}")
        return outcome

    def _record_event(self, event_id: str, event: str) -> Dict[str, Any]:
        if self.repo.webhook_event_seen(event_id):
            return {"event_id": event_id, "event": event, "status": "duplicate"}
        self.repo.record_webhook_event(event_id, event, None)
        try:
            self.repo.commit()
        except IntegrityError:
            # concurrent delivery of the same event
            self.repo.rollback()
            return {"event_id": event_id, "event": event, "status": "duplicate"}
        logger.info(f"Webhook {event_id} ({event}) recorded, nothing to apply")
        return {"event_id": event_id, "event": event, "status": "ignored"}
