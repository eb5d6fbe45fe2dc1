# storefront/services/combo_service.py
from sqlalchemy.orm import Session

from storefront.data.models.combo import ComboOfferModel, ComboOfferItemModel
from storefront.domain.errors import ValidationError, NotFound, Conflict, Forbidden
from storefront.domain.schemas import ComboCreate, ComboUpdate
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.cart_service import combo_is_live
from storefront.services.pricing_resolver import default_source, effective_price
from storefront.utils.money import to_money, as_utc, ZERO
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("title", "description", "discount_price", "is_active", "start_date", "end_date")
NULLABLE_FIELDS = ("start_date", "end_date")


def _check_window(start_date, end_date) -> None:
    if start_date and end_date and as_utc(end_date) <= as_utc(start_date):
        raise ValidationError("Combo end date must be after its start date")


class ComboService:
    def __init__(self, db: Session):
        self.repo = CatalogRepo(db)

    def get_combo(self, combo_id: int) -> ComboOfferModel:
        combo = self.repo.get_combo(combo_id)
        if not combo:
            raise NotFound(f"Combo {combo_id} not found")
        return combo

    def list_active(self) -> list[ComboOfferModel]:
        return [c for c in self.repo.list_active_combos() if combo_is_live(c)]

    def create_combo(self, payload: ComboCreate, created_by: int | None = None) -> ComboOfferModel:
        """
        Use case: bundle products at a fixed price.
        Without an explicit original price it is the sum of the catalog prices.
        """
        _check_window(payload.start_date, payload.end_date)

        items = []
        catalog_total = ZERO
        for position, entry in enumerate(payload.items):
            product = self.repo.get_product(entry.product_id)
            if not product:
                raise NotFound(f"Product {entry.product_id} not found")
            variant = None
            if entry.variant_id is not None:
                variant = self.repo.get_variant(entry.variant_id)
                if not variant:
                    raise NotFound(f"Variant {entry.variant_id} not found")

            unit = effective_price(default_source(product, variant))
            catalog_total += unit * entry.quantity
            items.append(
                ComboOfferItemModel(
                    position=position,
                    product_id=product.id,
                    variant_id=variant.id if variant else None,
                    quantity=entry.quantity,
                    offer_price=to_money(entry.offer_price) if entry.offer_price is not None else None,
                )
            )

        original_price = to_money(payload.original_price if payload.original_price is not None else catalog_total)
        discount_price = to_money(payload.discount_price)
        if discount_price > original_price:
            raise ValidationError("Discount price cannot exceed the original price")

        combo = ComboOfferModel(
            title=payload.title.strip(),
            description=payload.description,
            original_price=original_price,
            discount_price=discount_price,
            start_date=payload.start_date,
            end_date=payload.end_date,
            is_active=payload.is_active,
            created_by=created_by,
            items=items,
        )
        created = self.repo.add(combo)
        logger.info(f"Combo {created.id} created: {original_price} -> {discount_price}")
        return created

    def update_combo(self, combo_id: int, payload: ComboUpdate) -> ComboOfferModel:
        combo = self.get_combo(combo_id)
        # dates may be cleared with null, the rest may not
        changes = {
            k: v
            for k, v in payload.model_dump(exclude_unset=True).items()
            if k in UPDATABLE_FIELDS and (v is not None or k in NULLABLE_FIELDS)
        }

        _check_window(changes.get("start_date", combo.start_date), changes.get("end_date", combo.end_date))
        if "discount_price" in changes:
            changes["discount_price"] = to_money(changes["discount_price"])
            if changes["discount_price"] > to_money(combo.original_price):
                raise ValidationError("Discount price cannot exceed the original price")

        for field in UPDATABLE_FIELDS:
            if field in changes:
                setattr(combo, field, changes[field])
        self.repo.commit()

        logger.info(f"Combo {combo_id} updated: {sorted(changes)}")
        return combo

    def delete_combo(self, combo_id: int, actor_id: int | None = None, actor_role: str | None = None) -> None:
        combo = self.get_combo(combo_id)
        # sellers only delete combos they created
        if actor_role == "seller" and combo.created_by != actor_id:
            raise Forbidden("You can only delete your own combos")
        if self.repo.combo_in_use(combo_id):
            raise Conflict("Combo is still in use by a cart")
        self.repo.delete(combo)
        logger.info(f"Combo {combo_id} deleted")
