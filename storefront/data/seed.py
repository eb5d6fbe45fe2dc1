# storefront/data/seed.py
from datetime import timedelta

from sqlalchemy.orm import Session

from storefront.data.database import SessionLocal, Base, engine
from storefront.data.models import (
    UserModel,
    AddressModel,
    ProductModel,
    ProductVariantModel,
    ComboOfferModel,
    ComboOfferItemModel,
    CouponModel,
)
from storefront.utils.money import utc_now
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def seed(db: Session | None = None) -> bool:
    """Demo catalog for local runs. Only seeds an empty database."""
    own_session = db is None
    db = db or SessionLocal()
    try:
        if db.query(ProductModel).first():
            return False

        user = UserModel(id=1, name="Demo User")
        user.addresses.append(
            AddressModel(country="INDIA", house_details="12 MG Road", state="Karnataka", city="Bengaluru", postal_code="560001")
        )
        db.add(user)

        shirt = ProductModel(seller_id=100, title="Cotton Shirt", price=500, discounted_price=450, stock=20)
        mug = ProductModel(seller_id=101, title="Ceramic Mug", price=250, stock=50, emi=False)
        phone = ProductModel(seller_id=100, title="Phone", price=0, stock=0, emi=True)
        db.add_all([shirt, mug, phone])
        db.flush()

        db.add(
            ProductVariantModel(
                product_id=phone.id,
                seller_id=100,
                sku="PHONE-BLK",
                variant_title="Phone Black",
                color={
                    "colorName": "Black",
                    "price": 20000,
                    "discountedPrice": 18000,
                    "stock": 10,
                    "sizes": [
                        {"sizeValue": "128GB", "price": 20000, "discountedPrice": 18000, "stock": 5},
                        {"sizeValue": "256GB", "price": 24000, "discountedPrice": 0, "stock": 3},
                    ],
                },
            )
        )

        db.add(
            ComboOfferModel(
                title="Shirt + Mug",
                description="Shirt and mug together",
                original_price=700,
                discount_price=600,
                items=[
                    ComboOfferItemModel(position=0, product_id=shirt.id, quantity=1),
                    ComboOfferItemModel(position=1, product_id=mug.id, quantity=1, offer_price=200),
                ],
            )
        )

        db.add(
            CouponModel(
                code="SAVE10",
                description="10% off orders above 500",
                discount_type="percentage",
                percentage_value=10,
                min_order_value=500,
                expiry_date=utc_now() + timedelta(days=365),
            )
        )

        db.flush()
        user.selected_address_id = user.addresses[0].id
        db.commit()
        logger.info("Seeded demo catalog")
        return True
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    seed()
