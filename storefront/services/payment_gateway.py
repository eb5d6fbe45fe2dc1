# storefront/services/payment_gateway.py
import hashlib
import hmac
from decimal import Decimal

import requests
from requests import RequestException

from storefront.domain.errors import ExternalServiceError
from storefront.utils.retry import gateway_read_retry
from storefront.utils.settings import (
    RAZORPAY_API_URL,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
    PAYMENT_CURRENCY,
    HTTP_TIMEOUT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def to_paise(amount) -> int:
    return int((Decimal(str(amount)) * 100).to_integral_value())


class RazorpayGateway:
    """
    Minimal Razorpay REST client.
    Only reads are retried, order creation and refunds move money.
    """

    def __init__(
        self,
        base_url: str | None = None,
        key_id: str | None = None,
        key_secret: str | None = None,
        webhook_secret: str | None = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or RAZORPAY_API_URL).rstrip("/")
        self.key_id = key_id if key_id is not None else RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else RAZORPAY_KEY_SECRET
        self.webhook_secret = webhook_secret if webhook_secret is not None else RAZORPAY_WEBHOOK_SECRET
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (self.key_id, self.key_secret)

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"RazorpayGateway POST {url}")
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except RequestException as e:
            logger.error(f"RazorpayGateway POST {url} failed: {e}")
            raise ExternalServiceError("Payment gateway request failed") from e
        return resp.json()

    @gateway_read_retry()
    def _get(self, path: str) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"RazorpayGateway GET {url}")
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def create_order(self, amount, reference: str, notes: dict | None = None) -> dict:
        return self._post(
            "/orders",
            {
                "amount": to_paise(amount),
                "currency": PAYMENT_CURRENCY,
                "receipt": reference,
                "payment_capture": 1,
                "notes": {"orderId": reference, **(notes or {})},
            },
        )

    def fetch_payment(self, payment_id: str) -> dict:
        try:
            return self._get(f"/payments/{payment_id}")
        except RequestException as e:
            logger.error(f"RazorpayGateway fetch payment {payment_id} failed: {e}")
            raise ExternalServiceError("Payment gateway request failed") from e

    def refund(self, payment_id: str, amount=None, receipt: str | None = None) -> dict:
        payload = {}
        if amount is not None and Decimal(str(amount)) > 0:
            payload["amount"] = to_paise(amount)
        if receipt:
            payload["receipt"] = receipt
        return self._post(f"/payments/{payment_id}/refund", payload)

    def find_refund(self, payment_id: str, receipt: str) -> dict | None:
        """Refund already issued for ``payment_id`` under ``receipt``, if any."""
        try:
            refunds = self._get(f"/payments/{payment_id}/refunds")
        except RequestException as e:
            logger.error(f"RazorpayGateway list refunds {payment_id} failed: {e}")
            raise ExternalServiceError("Payment gateway request failed") from e
        return next((r for r in refunds.get("items") or [] if r.get("receipt") == receipt), None)

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret or not signature:
            return False
        expected = _hmac_hex(self.key_secret, f"{gateway_order_id}|{payment_id}".encode())
        return hmac.compare_digest(expected, signature)

    def verify_webhook(self, body: bytes, signature: str | None) -> bool:
        # the signature covers the raw request body
        if not self.webhook_secret or not signature:
            return False
        return hmac.compare_digest(_hmac_hex(self.webhook_secret, body), signature)
