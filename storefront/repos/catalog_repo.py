# storefront/repos/catalog_repo.py
from sqlalchemy import select, exists
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartComboModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.catalog import ProductModel, ProductVariantModel
from storefront.data.models.combo import ComboOfferModel
from storefront.data.models.coupon import CouponModel


class CatalogRepo:
    """Read access to products, variants, combos and coupons."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, variant_id: int) -> ProductVariantModel | None:
        return self.db.get(ProductVariantModel, variant_id)

    def add(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    # combos
    def get_combo(self, combo_id: int) -> ComboOfferModel | None:
        return self.db.get(ComboOfferModel, combo_id)

    def list_active_combos(self) -> list[ComboOfferModel]:
        return list(
            self.db.execute(
                select(ComboOfferModel).where(ComboOfferModel.is_active.is_(True)).order_by(ComboOfferModel.id)
            ).scalars()
        )

    def combo_in_use(self, combo_id: int) -> bool:
        """True while any cart has the combo applied or a line tagged with it."""
        applied = exists().where(CartComboModel.combo_id == combo_id)
        tagged = exists().where(CartItemModel.combo_id == combo_id)
        return bool(self.db.execute(select(applied | tagged)).scalar())

    # coupons
    def get_coupon(self, coupon_id: int) -> CouponModel | None:
        return self.db.get(CouponModel, coupon_id)

    def get_coupon_by_code(self, code: str) -> CouponModel | None:
        return self.db.execute(
            select(CouponModel).where(CouponModel.code == code)
        ).scalar_one_or_none()

    def list_coupons(self) -> list[CouponModel]:
        return list(
            self.db.execute(
                select(CouponModel).where(CouponModel.is_active.is_(True)).order_by(CouponModel.id.desc())
            ).scalars()
        )

    def delete(self, obj) -> None:
        self.db.delete(obj)
        self.db.commit()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
