# storefront/services/pricing_resolver.py
"""Unit price, discounted price and stock for a product, a variant color or a
variant size.

A line is priced from exactly one source. The source is picked once, by
``source_for``, and everything else (cart lines, coupon base, combo pricing)
reads prices through it.
"""
from dataclasses import dataclass
from decimal import Decimal

from storefront.data.models.catalog import ProductModel, ProductVariantModel
from storefront.domain.errors import ColorMismatch, SizeUnavailable, ValidationError
from storefront.utils.money import to_money


@dataclass(frozen=True)
class ProductPrice:
    product: ProductModel

    def raw(self) -> dict:
        return {
            "price": self.product.price,
            "discountedPrice": self.product.discounted_price,
            "stock": self.product.stock,
        }


@dataclass(frozen=True)
class ColorPrice:
    variant: ProductVariantModel
    color: dict

    def raw(self) -> dict:
        return self.color


@dataclass(frozen=True)
class SizePrice:
    variant: ProductVariantModel
    color: dict
    size: dict

    def raw(self) -> dict:
        return self.size


PriceSource = ProductPrice | ColorPrice | SizePrice


@dataclass(frozen=True)
class ResolvedPrice:
    unit_price: Decimal
    discounted_unit_price: Decimal
    stock: int
    color: str | None
    size: str | None
    seller_id: int


def _discount_or_none(value) -> Decimal | None:
    if value is None:
        return None
    value = to_money(value)
    return value if value > 0 else None


def effective_price(source: PriceSource) -> Decimal:
    """Discounted price when set and positive, else the base price."""
    raw = source.raw()
    return _discount_or_none(raw.get("discountedPrice")) or to_money(raw.get("price"))


def _color_of(product: ProductModel, variant: ProductVariantModel) -> dict:
    if variant.product_id != product.id:
        raise ValidationError("Variant does not belong to product")
    color = variant.color or {}
    if not color.get("colorName"):
        raise ValidationError("Color data not available for variant")
    return color


def source_for(
    product: ProductModel,
    variant: ProductVariantModel | None = None,
    selected_color: str | None = None,
    selected_size: str | None = None,
) -> PriceSource:
    if variant is None:
        return ProductPrice(product)

    color = _color_of(product, variant)

    if selected_color and selected_color.strip().lower() != color["colorName"].strip().lower():
        raise ColorMismatch(f"Color {selected_color} does not match variant color {color['colorName']}")

    sizes = color.get("sizes") or []
    if not sizes:
        return ColorPrice(variant, color)

    if not selected_size:
        raise SizeUnavailable("Size selection is required for this variant")

    size = next((s for s in sizes if s.get("sizeValue") == selected_size), None)
    if size is None:
        raise SizeUnavailable(f"Size {selected_size} not available")
    return SizePrice(variant, color, size)


def default_source(product: ProductModel, variant: ProductVariantModel | None = None) -> PriceSource:
    """Source used when nobody picked a size: the first size, else the color."""
    if variant is None:
        return ProductPrice(product)
    color = _color_of(product, variant)
    sizes = color.get("sizes") or []
    if sizes:
        return SizePrice(variant, color, sizes[0])
    return ColorPrice(variant, color)


def price_of(source: PriceSource) -> ResolvedPrice:
    raw = source.raw()
    unit_price = to_money(raw.get("price"))
    discounted = _discount_or_none(raw.get("discountedPrice")) or unit_price

    match source:
        case ProductPrice(product=product):
            color, size, seller_id = None, None, product.seller_id
        case ColorPrice(variant=variant, color=color_data):
            color, size, seller_id = color_data["colorName"], None, variant.seller_id
        case SizePrice(variant=variant, color=color_data, size=size_data):
            color, size, seller_id = color_data["colorName"], size_data["sizeValue"], variant.seller_id

    return ResolvedPrice(
        unit_price=unit_price,
        discounted_unit_price=discounted,
        stock=int(raw.get("stock") or 0),
        color=color,
        size=size,
        seller_id=seller_id,
    )


class PricingResolver:
    def resolve(
        self,
        product: ProductModel,
        variant: ProductVariantModel | None = None,
        selected_color: str | None = None,
        selected_size: str | None = None,
    ) -> ResolvedPrice:
        return price_of(source_for(product, variant, selected_color, selected_size))

    def resolve_default(self, product: ProductModel, variant: ProductVariantModel | None = None) -> ResolvedPrice:
        return price_of(default_source(product, variant))

    def line_effective_price(
        self,
        product: ProductModel,
        variant: ProductVariantModel | None,
        selected_size: str | None,
    ) -> Decimal:
        """Coupon base price for a cart line: size level when the selected size
        still exists, else color level, else the product itself."""
        if variant is None:
            return effective_price(ProductPrice(product))
        color = _color_of(product, variant)
        sizes = color.get("sizes") or []
        size = next((s for s in sizes if selected_size and s.get("sizeValue") == selected_size), None)
        if size is not None:
            return effective_price(SizePrice(variant, color, size))
        return effective_price(ColorPrice(variant, color))
