#import all models so SQLAlchemy registers them in Base.metadata

from storefront.data.models.user import UserModel, AddressModel
from storefront.data.models.catalog import ProductModel, ProductVariantModel
from storefront.data.models.combo import ComboOfferModel, ComboOfferItemModel
from storefront.data.models.coupon import CouponModel
from storefront.data.models.cart import CartModel, CartComboModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import (
    OrderModel,
    OrderItemModel,
    OrderStatusHistoryModel,
    EmiInstallmentModel,
)
from storefront.data.models.webhook_event import WebhookEventModel

__all__ = [
    "UserModel",
    "AddressModel",
    "ProductModel",
    "ProductVariantModel",
    "ComboOfferModel",
    "ComboOfferItemModel",
    "CouponModel",
    "CartModel",
    "CartComboModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderStatusHistoryModel",
    "EmiInstallmentModel",
    "WebhookEventModel",
]
