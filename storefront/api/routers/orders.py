# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service
from storefront.data.database import get_db
from storefront.domain.schemas import (
    CheckoutIn,
    CheckoutOut,
    OrderOut,
    OrderListOut,
    StatusUpdateIn,
    ItemStatusIn,
    CancelIn,
    ReturnIn,
)
from storefront.services.checkout_service import CheckoutService
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session, lock_service: LockService):
    return OrderService(db, lock_service)


@router.post("/", response_model=CheckoutOut, status_code=201)
def create_order(
    payload: CheckoutIn,
    user_id: int = Query(..., gt=0),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    """
    Places an order from the user's cart and empties the cart.
    Retries with the same Idempotency-Key return the first order.
    """
    svc = CheckoutService(db, lock_service)
    return svc.create_order(user_id, payload.payment_method, payload.idempotency_key or idempotency_key)


@router.get("/", response_model=OrderListOut)
def list_orders(
    user_id: int = Query(..., gt=0),
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).list_orders(user_id, status, page, limit)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).get_order(order_id, user_id)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: str,
    payload: StatusUpdateIn,
    actor_id: int = Query(..., gt=0),
    actor_role: str = Query(...),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).update_status(
        order_id, payload.status, actor_id=actor_id, actor_role=actor_role, notes=payload.notes
    )


@router.patch("/{order_id}/items/{item_id}/status", response_model=OrderOut)
def update_item_status(
    order_id: str,
    item_id: int,
    payload: ItemStatusIn,
    actor_id: int = Query(..., gt=0),
    actor_role: str = Query(...),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).update_item_status(order_id, item_id, payload.status, actor_id, actor_role)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: str,
    payload: CancelIn | None = None,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).cancel_order(order_id, user_id, payload.reason if payload else None)


@router.post("/{order_id}/return", response_model=OrderOut)
def return_order(
    order_id: str,
    payload: ReturnIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
):
    return get_service(db, lock_service).return_order(order_id, user_id, payload.reason)
