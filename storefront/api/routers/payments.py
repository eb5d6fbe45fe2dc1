# storefront/api/routers/payments.py
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service, get_payment_gateway
from storefront.data.database import get_db
from storefront.domain.schemas import (
    EmiIn,
    VerifyPaymentIn,
    RefundIn,
    PaymentInitOut,
    RefundOut,
    OrderOut,
    WebhookOut,
)
from storefront.services.lock_service import LockService
from storefront.services.payment_gateway import RazorpayGateway
from storefront.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


def get_service(db: Session, lock_service: LockService, gateway: RazorpayGateway):
    return PaymentService(db, lock_service, gateway)


@router.post("/webhook", response_model=WebhookOut)
async def webhook(
    request: Request,
    signature: str | None = Header(None, alias="X-Razorpay-Signature"),
    event_id: str | None = Header(None, alias="X-Razorpay-Event-Id"),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    # the signature covers the exact bytes received
    body = await request.body()
    svc = get_service(db, lock_service, gateway)
    return await run_in_threadpool(svc.handle_webhook, body, signature, event_id)


@router.post("/{order_id}/initiate", response_model=PaymentInitOut)
def initiate_payment(
    order_id: str,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    return get_service(db, lock_service, gateway).initiate_payment(order_id, user_id)


@router.post("/{order_id}/emi", response_model=PaymentInitOut)
def initiate_emi_payment(
    order_id: str,
    payload: EmiIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    return get_service(db, lock_service, gateway).initiate_emi_payment(order_id, user_id, payload.tenure)


@router.post("/{order_id}/verify", response_model=OrderOut)
def verify_payment(
    order_id: str,
    payload: VerifyPaymentIn,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    return get_service(db, lock_service, gateway).verify_payment(
        order_id, user_id, payload.gateway_order_id, payload.payment_id, payload.signature
    )


@router.post("/{order_id}/refund", response_model=RefundOut)
def refund(
    order_id: str,
    payload: RefundIn | None = None,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    return get_service(db, lock_service, gateway).refund(order_id, user_id, payload.amount if payload else None)


@router.get("/{order_id}/status")
def get_payment_status(
    order_id: str,
    user_id: int = Query(..., gt=0),
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
) -> Dict[str, Any]:
    return get_service(db, lock_service, gateway).get_payment_status(order_id, user_id)
