# storefront/domain/schemas.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, ConfigDict, StrictInt, field_validator


# users

class UserCreate(BaseModel):
    """Schema for creating a user."""

    id: int = Field(..., gt=0, description="User ID (must be > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="User name")


class AddressIn(BaseModel):
    """Schema for adding a shipping address."""

    country: str = Field("INDIA", min_length=1, max_length=60)
    house_details: str = Field(..., min_length=1, max_length=200)
    landmark: str = Field("", max_length=200)
    state: str | None = None
    city: str | None = None
    postal_code: str | None = Field(None, max_length=12)
    map_url: str | None = None
    select: bool = Field(True, description="Make this the selected shipping address")


class SelectAddressIn(BaseModel):
    address_id: int = Field(..., gt=0)


class AddressOut(BaseModel):
    id: int
    country: str
    house_details: str
    landmark: str
    state: str | None = None
    city: str | None = None
    postal_code: str | None = None
    map_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    """Schema for a user (response)."""

    id: int
    name: str
    selected_address_id: int | None = None
    addresses: List[AddressOut] = []

    model_config = ConfigDict(from_attributes=True)


# cart requests

class ItemIn(BaseModel):
    """Schema for adding a product to the cart. Negative quantities decrement an existing line."""

    product_id: int = Field(..., gt=0, description="Product ID (must be > 0)")
    quantity: StrictInt = Field(..., description="Non-zero quantity")
    variant_id: int | None = Field(None, gt=0)
    combo_id: int | None = Field(None, gt=0)
    selected_color: str | None = Field(None, max_length=60)
    selected_size: str | None = Field(None, max_length=30)


class QuantityIn(BaseModel):
    quantity: StrictInt = Field(..., ge=1)


class ComboApplyIn(BaseModel):
    quantity: StrictInt = Field(1, ge=1)


class CouponApplyIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class CourierIn(BaseModel):
    courier_service: Literal["regular", "standard"]


# cart responses

class CartItemOut(BaseModel):
    """Schema for a cart line (response)."""

    id: int
    product_id: int
    variant_id: int | None = None
    combo_id: int | None = None
    selected_color: str | None = None
    selected_size: str | None = None
    unit_price: Decimal
    discounted_unit_price: Decimal
    quantity: int
    total_price: Decimal
    total_discounted_price: Decimal
    stock: int
    seller_id: int
    is_combo_item: bool

    model_config = ConfigDict(from_attributes=True)


class AppliedComboOut(BaseModel):
    combo_id: int
    discount_applied: Decimal

    model_config = ConfigDict(from_attributes=True)


class AppliedCouponOut(BaseModel):
    coupon_id: int
    code: str
    discount_type: str
    discount_value: Decimal | None = None
    discount_applied: Decimal
    original_amount: Decimal | None = None
    final_amount: Decimal | None = None


class CartOut(BaseModel):
    """Schema for the cart (response)."""

    id: int
    user_id: int
    version: int
    items: List[CartItemOut]
    applied_combos: List[AppliedComboOut]
    applied_coupon: AppliedCouponOut | None = None

    total_items: int
    total_price: Decimal
    total_discounted_price: Decimal
    total_savings: Decimal

    subtotal: Decimal
    combo_discount: Decimal
    coupon_discount: Decimal
    gst: Decimal
    delivery_charge: Decimal
    final_total: Decimal
    courier_service: str

    model_config = ConfigDict(from_attributes=True)


class PriceSummaryOut(BaseModel):
    subtotal: Decimal
    item_discount: Decimal
    combo_discount: Decimal
    coupon_discount: Decimal
    subtotal_after_discounts: Decimal
    gst: Decimal
    delivery_charge: Decimal
    final_total: Decimal


class BillingPreviewOut(BaseModel):
    """Schema for the billing preview (response)."""

    user_id: int
    cart_items: int
    items_by_seller: Dict[int, List[CartItemOut]]
    pricing_summary: PriceSummaryOut
    applied_offers: Dict[str, Any]
    courier_service: str


# orders

class CheckoutIn(BaseModel):
    """Schema for placing an order from the cart."""

    payment_method: Literal["cod", "card", "emi", "upi", "netbanking", "wallet"]
    idempotency_key: str | None = Field(None, min_length=8, max_length=128)


class StatusUpdateIn(BaseModel):
    status: str
    notes: str = Field("", max_length=500)


class ItemStatusIn(BaseModel):
    status: str


class CancelIn(BaseModel):
    reason: str | None = Field(None, max_length=500)


class ReturnIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    variant_id: int | None = None
    selected_color: str | None = None
    selected_size: str | None = None
    unit_price: Decimal
    discounted_unit_price: Decimal
    quantity: int
    total_price: Decimal
    total_discounted_price: Decimal
    seller_id: int
    item_status: str

    model_config = ConfigDict(from_attributes=True)


class StatusHistoryOut(BaseModel):
    status: str
    timestamp: datetime
    notes: str

    model_config = ConfigDict(from_attributes=True)


class InstallmentOut(BaseModel):
    installment_no: int
    amount: Decimal
    due_date: datetime
    paid_date: datetime | None = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema for an order (response)."""

    order_id: str
    user_id: int
    status: str
    items: List[OrderItemOut]
    status_history: List[StatusHistoryOut]
    timeline: Dict[str, datetime | None]
    price_summary: PriceSummaryOut
    applied_offers: Dict[str, Any]

    shipping_address: Dict[str, Any]
    courier_service: str
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None

    payment_method: str
    payment_status: str
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    payment_date: datetime | None = None
    refund_amount: Decimal
    refund_date: datetime | None = None

    emi_enabled: bool
    emi_tenure: int | None = None
    emi_monthly_amount: Decimal | None = None
    emi_total_amount: Decimal | None = None
    emi_interest_rate: Decimal | None = None
    emi_status: str
    emi_paid_installments: int
    emi_next_payment_date: datetime | None = None
    installments: List[InstallmentOut]

    cancellation_reason: str | None = None
    return_reason: str | None = None
    created_at: datetime
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class CheckoutOut(BaseModel):
    order_id: str
    order: OrderOut


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    total: int
    page: int
    limit: int


# payments

class EmiIn(BaseModel):
    tenure: Literal[3, 6, 9, 12]


class VerifyPaymentIn(BaseModel):
    gateway_order_id: str = Field(..., min_length=1)
    payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class RefundIn(BaseModel):
    amount: Decimal | None = Field(None, gt=0)


class PaymentInitOut(BaseModel):
    order_id: str
    gateway_order_id: str
    amount: Decimal
    currency: str
    key: str
    emi: Dict[str, Any] | None = None


class RefundOut(BaseModel):
    order_id: str
    refund_id: str | None = None
    amount: Decimal
    status: str | None = None


class WebhookOut(BaseModel):
    event_id: str
    event: str
    status: str


# catalog administration

def _parse_expiry(value):
    # DD-MM-YYYY and DD/MM/YYYY are accepted besides ISO dates
    if isinstance(value, str):
        for sep in ("-", "/"):
            parts = value.split(sep)
            if len(parts) == 3 and len(parts[0]) <= 2 and len(parts[2]) == 4:
                day, month, year = (int(p) for p in parts)
                return date(year, month, day)
    return value


class CouponCreate(BaseModel):
    """Schema for creating a coupon."""

    code: str = Field(..., min_length=1, max_length=64)
    description: str = Field(..., min_length=1, max_length=500)
    discount_type: Literal["flat", "percentage"]
    flat_value: Decimal = Field(Decimal("0"), ge=0)
    percentage_value: Decimal = Field(Decimal("0"), ge=0, le=100)
    min_order_value: Decimal = Field(Decimal("0"), ge=0)
    expiry_date: date
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry(cls, v):
        return _parse_expiry(v)


class CouponUpdate(BaseModel):
    """Schema for updating a coupon, only the listed fields can change."""

    code: str | None = Field(None, min_length=1, max_length=64)
    description: str | None = Field(None, min_length=1, max_length=500)
    discount_type: Literal["flat", "percentage"] | None = None
    flat_value: Decimal | None = Field(None, ge=0)
    percentage_value: Decimal | None = Field(None, ge=0, le=100)
    min_order_value: Decimal | None = Field(None, ge=0)
    expiry_date: date | None = None
    is_active: bool | None = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return v.strip().upper() if v is not None else v

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry(cls, v):
        return _parse_expiry(v)


class CouponOut(BaseModel):
    id: int
    code: str
    description: str
    discount_type: str
    flat_value: Decimal
    percentage_value: Decimal
    min_order_value: Decimal
    expiry_date: datetime
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class ComboItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    variant_id: int | None = Field(None, gt=0)
    quantity: int = Field(1, ge=1)
    offer_price: Decimal | None = Field(None, gt=0)


class ComboCreate(BaseModel):
    """Schema for creating a combo offer."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    items: List[ComboItemIn] = Field(..., min_length=1)
    discount_price: Decimal = Field(..., ge=0)
    original_price: Decimal | None = Field(None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True


class ComboUpdate(BaseModel):
    """Schema for updating a combo offer, only the listed fields can change."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    discount_price: Decimal | None = Field(None, ge=0)
    is_active: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class ComboItemOut(BaseModel):
    product_id: int
    variant_id: int | None = None
    quantity: int
    offer_price: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class ComboOut(BaseModel):
    id: int
    title: str
    description: str
    items: List[ComboItemOut]
    original_price: Decimal
    discount_price: Decimal
    discount_applied: Decimal
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
