# storefront/api/routers/coupons.py
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.schemas import CouponCreate, CouponUpdate, CouponOut
from storefront.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/", response_model=CouponOut, status_code=201)
def create_coupon(payload: CouponCreate, db: Session = Depends(get_db)):
    return CouponService(db).create_coupon(payload)


@router.get("/", response_model=List[CouponOut])
def list_coupons(db: Session = Depends(get_db)):
    return CouponService(db).list_active()


@router.get("/{coupon_id}", response_model=CouponOut)
def get_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return CouponService(db).get_coupon(coupon_id)


@router.patch("/{coupon_id}", response_model=CouponOut)
def update_coupon(coupon_id: int, payload: CouponUpdate, db: Session = Depends(get_db)):
    return CouponService(db).update_coupon(coupon_id, payload)


@router.delete("/{coupon_id}", status_code=204)
def delete_coupon(coupon_id: int, db: Session = Depends(get_db)):
    CouponService(db).delete_coupon(coupon_id)
    return Response(status_code=204)
