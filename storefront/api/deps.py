# storefront/api/deps.py
from functools import lru_cache

from storefront.services.lock_service import LockService
from storefront.services.payment_gateway import RazorpayGateway


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


@lru_cache
def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway()
