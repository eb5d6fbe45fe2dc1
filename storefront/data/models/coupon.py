from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, Text, CheckConstraint

from storefront.data.database import Base


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")

    discount_type = Column(String(16), nullable=False, default="percentage")  # flat | percentage
    flat_value = Column(Numeric(12, 2), nullable=False, default=0)
    percentage_value = Column(Numeric(5, 2), nullable=False, default=0)
    min_order_value = Column(Numeric(12, 2), nullable=False, default=0)

    expiry_date = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("discount_type in ('flat', 'percentage')", name="ck_coupon_discount_type"),
        CheckConstraint("percentage_value >= 0 AND percentage_value <= 100", name="ck_coupon_percentage"),
    )

    @property
    def discount_value(self):
        return self.percentage_value if self.discount_type == "percentage" else self.flat_value
