from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    combo_id = Column(Integer, ForeignKey("combo_offers.id"), nullable=True)
    selected_color = Column(String, nullable=True)
    selected_size = Column(String, nullable=True)

    unit_price = Column(Numeric(12, 2), nullable=False)
    discounted_unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    total_discounted_price = Column(Numeric(12, 2), nullable=False)

    stock = Column(Integer, nullable=False, default=0)
    seller_id = Column(Integer, nullable=False)
    is_combo_item = Column(Boolean, nullable=False, default=False)
    added_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    cart = relationship("CartModel", back_populates="items")
    product = relationship("ProductModel")
    variant = relationship("ProductVariantModel")
