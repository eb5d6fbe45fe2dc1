from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ComboOfferModel(Base):
    __tablename__ = "combo_offers"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")

    original_price = Column(Numeric(12, 2), nullable=False)
    discount_price = Column(Numeric(12, 2), nullable=False)

    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, nullable=True)

    items = relationship(
        "ComboOfferItemModel",
        back_populates="combo",
        cascade="all, delete-orphan",
        order_by="ComboOfferItemModel.position",
    )

    @property
    def discount_applied(self):
        return (self.original_price or 0) - (self.discount_price or 0)


class ComboOfferItemModel(Base):
    __tablename__ = "combo_offer_items"

    id = Column(Integer, primary_key=True)
    combo_id = Column(Integer, ForeignKey("combo_offers.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    offer_price = Column(Numeric(12, 2), nullable=True)

    combo = relationship("ComboOfferModel", back_populates="items")
    product = relationship("ProductModel")
    variant = relationship("ProductVariantModel")
