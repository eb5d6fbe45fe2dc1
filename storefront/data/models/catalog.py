from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, JSON
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    seller_id = Column(Integer, nullable=False, index=True)
    title = Column(String, nullable=False)

    # base pricing, used when a line has no variant
    price = Column(Numeric(12, 2), nullable=False, default=0)
    discounted_price = Column(Numeric(12, 2), nullable=True)
    stock = Column(Integer, nullable=False, default=0)

    emi = Column(Boolean, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    variants = relationship("ProductVariantModel", back_populates="product")


class ProductVariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    seller_id = Column(Integer, nullable=False)
    sku = Column(String, nullable=False, unique=True)
    variant_title = Column(String, nullable=False, default="")
    emi = Column(Boolean, nullable=True)

    # {"colorName", "price", "discountedPrice", "stock",
    #  "sizes": [{"sizeValue", "price", "discountedPrice", "stock"}]}
    color = Column(JSON, nullable=True)

    product = relationship("ProductModel", back_populates="variants")
