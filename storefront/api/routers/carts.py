# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service
from storefront.data.database import get_db
from storefront.domain.schemas import (
    ItemIn,
    QuantityIn,
    ComboApplyIn,
    CouponApplyIn,
    CourierIn,
    CartOut,
    BillingPreviewOut,
)
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LockService

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(db: Session, lock_service: LockService):
    return CartService(db=db, lock_service=lock_service)


@router.get("/", response_model=CartOut)
def get_cart(
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).get_cart(user_id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).add_item(
        user_id=user_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        variant_id=payload.variant_id,
        combo_id=payload.combo_id,
        selected_color=payload.selected_color,
        selected_size=payload.selected_size,
    )


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item_quantity(
    item_id: int,
    payload: QuantityIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).update_item_quantity(user_id, item_id, payload.quantity)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).remove_item(user_id, item_id)


@router.delete("/", response_model=CartOut)
def clear_cart(
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).clear_cart(user_id)


@router.post("/combos/{combo_id}", response_model=CartOut)
def apply_combo(
    combo_id: int,
    payload: ComboApplyIn | None = None,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    quantity = payload.quantity if payload else 1
    return get_service(db, lock_service).apply_combo(user_id, combo_id, quantity)


@router.delete("/combos/{combo_id}", response_model=CartOut)
def remove_combo(
    combo_id: int,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).remove_combo(user_id, combo_id)


@router.post("/coupon", response_model=CartOut)
def apply_coupon(
    payload: CouponApplyIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).apply_coupon(user_id, payload.code)


@router.delete("/coupon", response_model=CartOut)
def remove_coupon(
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).remove_coupon(user_id)


@router.put("/courier", response_model=CartOut)
def select_courier(
    payload: CourierIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).select_courier(user_id, payload.courier_service)


@router.get("/billing-preview", response_model=BillingPreviewOut)
def billing_preview(
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    """
    Recalculates the cart and stores its billing summary.
    """
    return get_service(db, lock_service).billing_preview(user_id)
