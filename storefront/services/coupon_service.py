# storefront/services/coupon_service.py
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.coupon import CouponModel
from storefront.domain.errors import ValidationError, NotFound, Conflict
from storefront.domain.schemas import CouponCreate, CouponUpdate
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.money import to_money, utc_now, as_utc, ZERO
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = (
    "code",
    "description",
    "discount_type",
    "flat_value",
    "percentage_value",
    "min_order_value",
    "expiry_date",
    "is_active",
)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59, 999999), tzinfo=timezone.utc)


def _check_value(discount_type: str, flat_value: Decimal, percentage_value: Decimal) -> tuple[Decimal, Decimal]:
    """Returns (flat, percentage) with the unused one zeroed."""
    if discount_type == "flat":
        if flat_value is None or flat_value <= 0:
            raise ValidationError("Flat value must be provided and > 0 for flat type")
        return to_money(flat_value), ZERO
    if percentage_value is None or not 0 < percentage_value <= 100:
        raise ValidationError("Percentage value must be between 1 and 100 for percentage type")
    return ZERO, to_money(percentage_value)


class CouponService:
    def __init__(self, db: Session):
        self.repo = CatalogRepo(db)

    def get_coupon(self, coupon_id: int) -> CouponModel:
        coupon = self.repo.get_coupon(coupon_id)
        if not coupon:
            raise NotFound(f"Coupon {coupon_id} not found")
        return coupon

    def list_active(self) -> list[CouponModel]:
        now = utc_now()
        return [c for c in self.repo.list_coupons() if as_utc(c.expiry_date) > now]

    def create_coupon(self, payload: CouponCreate) -> CouponModel:
        flat, percentage = _check_value(payload.discount_type, payload.flat_value, payload.percentage_value)
        expiry = end_of_day(payload.expiry_date)
        if expiry < utc_now():
            raise ValidationError("Expiry date cannot be in the past")
        if self.repo.get_coupon_by_code(payload.code):
            raise Conflict("Coupon code already exists")

        coupon = CouponModel(
            code=payload.code,
            description=payload.description.strip(),
            discount_type=payload.discount_type,
            flat_value=flat,
            percentage_value=percentage,
            min_order_value=to_money(payload.min_order_value),
            expiry_date=expiry,
            is_active=payload.is_active,
        )
        try:
            created = self.repo.add(coupon)
        except IntegrityError as e:
            self.repo.rollback()
            raise Conflict("Coupon code already exists") from e

        logger.info(f"Coupon {created.code} created ({created.discount_type} {created.discount_value})")
        return created

    def update_coupon(self, coupon_id: int, payload: CouponUpdate) -> CouponModel:
        coupon = self.get_coupon(coupon_id)
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if k in UPDATABLE_FIELDS and v is not None}

        if "code" in changes and changes["code"] != coupon.code:
            if self.repo.get_coupon_by_code(changes["code"]):
                raise Conflict("Coupon code already exists")
        if "expiry_date" in changes:
            changes["expiry_date"] = end_of_day(changes["expiry_date"])
            if changes["expiry_date"] < utc_now():
                raise ValidationError("Expiry date cannot be in the past")

        discount_type = changes.get("discount_type", coupon.discount_type)
        flat, percentage = _check_value(
            discount_type,
            changes.get("flat_value", coupon.flat_value),
            changes.get("percentage_value", coupon.percentage_value),
        )
        changes.update(discount_type=discount_type, flat_value=flat, percentage_value=percentage)
        if "min_order_value" in changes:
            changes["min_order_value"] = to_money(changes["min_order_value"])

        for field in UPDATABLE_FIELDS:
            if field in changes:
                setattr(coupon, field, changes[field])

        try:
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            raise Conflict("Coupon code already exists") from e

        logger.info(f"Coupon {coupon_id} updated: {sorted(changes)}")
        return coupon

    def delete_coupon(self, coupon_id: int) -> None:
        coupon = self.get_coupon(coupon_id)
        self.repo.delete(coupon)
        logger.info(f"Coupon {coupon_id} deleted")
