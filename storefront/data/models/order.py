from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, JSON, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from storefront.data.database import Base

TIMELINE_FIELDS = (
    "order_created",
    "payment_completed",
    "order_confirmed",
    "processing_started",
    "order_shipped",
    "order_delivered",
    "order_cancelled",
    "order_returned",
)


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_id = Column(String(40), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # one order per cart version, and per caller-supplied key
    checkout_key = Column(String(64), nullable=False, unique=True)
    idempotency_key = Column(String(128), nullable=True, unique=True)

    shipping_address = Column(JSON, nullable=False)
    courier_service = Column(String(16), nullable=False, default="regular")
    estimated_delivery_date = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_date = Column(DateTime(timezone=True), nullable=True)

    # price summary
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    item_discount = Column(Numeric(12, 2), nullable=False, default=0)
    combo_discount = Column(Numeric(12, 2), nullable=False, default=0)
    coupon_discount = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal_after_discounts = Column(Numeric(12, 2), nullable=False, default=0)
    gst = Column(Numeric(12, 2), nullable=False, default=0)
    delivery_charge = Column(Numeric(12, 2), nullable=False, default=0)
    final_total = Column(Numeric(12, 2), nullable=False, default=0)

    applied_offers = Column(JSON, nullable=False, default=dict)

    # payment info
    payment_method = Column(String(16), nullable=False, default="cod")
    payment_status = Column(String(16), nullable=False, default="pending")
    gateway_order_id = Column(String(64), nullable=True, index=True)
    gateway_payment_id = Column(String(64), nullable=True)
    gateway_signature = Column(String(256), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    refund_id = Column(String(64), nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=False, default=0)
    refund_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(16), nullable=False, default="pending")

    # timeline, first occurrence wins
    order_created = Column(DateTime(timezone=True), nullable=True)
    payment_completed = Column(DateTime(timezone=True), nullable=True)
    order_confirmed = Column(DateTime(timezone=True), nullable=True)
    processing_started = Column(DateTime(timezone=True), nullable=True)
    order_shipped = Column(DateTime(timezone=True), nullable=True)
    order_delivered = Column(DateTime(timezone=True), nullable=True)
    order_cancelled = Column(DateTime(timezone=True), nullable=True)
    order_returned = Column(DateTime(timezone=True), nullable=True)

    # EMI
    emi_enabled = Column(Boolean, nullable=False, default=False)
    emi_tenure = Column(Integer, nullable=True)
    emi_monthly_amount = Column(Numeric(12, 2), nullable=True)
    emi_total_amount = Column(Numeric(12, 2), nullable=True)
    emi_interest_rate = Column(Numeric(5, 2), nullable=True)
    emi_status = Column(String(16), nullable=False, default="pending")
    emi_paid_installments = Column(Integer, nullable=False, default=0)
    emi_next_payment_date = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    return_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
    status_history = relationship(
        "OrderStatusHistoryModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistoryModel.id",
    )
    installments = relationship(
        "EmiInstallmentModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="EmiInstallmentModel.installment_no",
    )

    @property
    def price_summary(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "item_discount": self.item_discount,
            "combo_discount": self.combo_discount,
            "coupon_discount": self.coupon_discount,
            "subtotal_after_discounts": self.subtotal_after_discounts,
            "gst": self.gst,
            "delivery_charge": self.delivery_charge,
            "final_total": self.final_total,
        }

    @property
    def timeline(self) -> dict:
        return {field: getattr(self, field) for field in TIMELINE_FIELDS}


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    product_id = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    selected_color = Column(String, nullable=True)
    selected_size = Column(String, nullable=True)

    unit_price = Column(Numeric(12, 2), nullable=False)
    discounted_unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    total_discounted_price = Column(Numeric(12, 2), nullable=False)

    seller_id = Column(Integer, nullable=False)
    item_status = Column(String(16), nullable=False, default="pending")

    order = relationship("OrderModel", back_populates="items")


class OrderStatusHistoryModel(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(16), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_now)
    notes = Column(Text, nullable=False, default="")

    order = relationship("OrderModel", back_populates="status_history")


class EmiInstallmentModel(Base):
    __tablename__ = "emi_installments"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_no = Column(Integer, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(16), nullable=False, default="pending")  # pending, paid, failed
    gateway_payment_id = Column(String(64), nullable=True)

    order = relationship("OrderModel", back_populates="installments")
