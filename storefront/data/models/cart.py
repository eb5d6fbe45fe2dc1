#storefront/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    version = Column(Integer, nullable=False, default=1)

    # derived, written only by cart_totals.recalculate
    total_items = Column(Integer, nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_discounted_price = Column(Numeric(12, 2), nullable=False, default=0)
    total_savings = Column(Numeric(12, 2), nullable=False, default=0)

    # applied coupon, at most one
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    coupon_code = Column(String(64), nullable=True)
    coupon_discount_type = Column(String(16), nullable=True)
    coupon_discount_value = Column(Numeric(12, 2), nullable=True)
    coupon_discount_applied = Column(Numeric(12, 2), nullable=False, default=0)
    coupon_original_amount = Column(Numeric(12, 2), nullable=True)
    coupon_final_amount = Column(Numeric(12, 2), nullable=True)

    # billing summary, written by the billing preview
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    combo_discount = Column(Numeric(12, 2), nullable=False, default=0)
    coupon_discount = Column(Numeric(12, 2), nullable=False, default=0)
    gst = Column(Numeric(12, 2), nullable=False, default=0)
    delivery_charge = Column(Numeric(12, 2), nullable=False, default=0)
    final_total = Column(Numeric(12, 2), nullable=False, default=0)

    courier_service = Column(String(16), nullable=False, default="regular")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.position",
    )
    applied_combos = relationship(
        "CartComboModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartComboModel.id",
    )

    @property
    def applied_coupon(self) -> dict | None:
        if self.coupon_id is None:
            return None
        return {
            "coupon_id": self.coupon_id,
            "code": self.coupon_code,
            "discount_type": self.coupon_discount_type,
            "discount_value": self.coupon_discount_value,
            "discount_applied": self.coupon_discount_applied,
            "original_amount": self.coupon_original_amount,
            "final_amount": self.coupon_final_amount,
        }


class CartComboModel(Base):
    __tablename__ = "cart_combos"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    combo_id = Column(Integer, ForeignKey("combo_offers.id"), nullable=False)
    discount_applied = Column(Numeric(12, 2), nullable=False, default=0)

    cart = relationship("CartModel", back_populates="applied_combos")
    combo = relationship("ComboOfferModel")

    __table_args__ = (UniqueConstraint("cart_id", "combo_id", name="u_cart_combo"),)
