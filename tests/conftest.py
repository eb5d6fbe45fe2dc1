import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["LOCK_WAIT_SECONDS"] = "0.2"
os.environ["LOCK_POLL_SECONDS"] = "0.02"

from datetime import timedelta
from types import SimpleNamespace

import fakeredis
import pytest
from fastapi.testclient import TestClient

import storefront.data.models  # noqa: F401
from storefront.api import create_app
from storefront.api.deps import get_lock_service, get_payment_gateway
from storefront.data.database import Base, SessionLocal, engine, get_db
from storefront.data.models import (
    UserModel,
    AddressModel,
    ProductModel,
    ProductVariantModel,
    ComboOfferModel,
    ComboOfferItemModel,
    CouponModel,
)
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import RazorpayGateway, _hmac_hex
from storefront.services.payment_service import PaymentService
from storefront.utils.money import utc_now


class FakeGateway(RazorpayGateway):
    """Real signing and verification, canned REST responses."""

    def __init__(self, webhook_secret="test_webhook_secret"):
        super().__init__(
            base_url="https://gateway.test/v1",
            key_id="rzp_test_key",
            key_secret="test_key_secret",
            webhook_secret=webhook_secret,
        )
        self.calls = []
        self.payment_method = "card"
        self._seq = 0
        self.refunds = {}

    def _post(self, path, payload):
        self.calls.append(("POST", path, payload))
        self._seq += 1
        if path == "/orders":
            return {"id": f"order_gw_{self._seq}", "amount": payload["amount"], "currency": payload["currency"]}
        refund = {"id": f"rfnd_{self._seq}", "status": "processed", "amount": payload.get("amount"), "receipt": payload.get("receipt")}
        self.refunds.setdefault(path.split("/")[2], []).append(refund)
        return refund

    def _get(self, path):
        self.calls.append(("GET", path, None))
        if path.endswith("/refunds"):
            return {"entity": "collection", "items": list(self.refunds.get(path.split("/")[2], []))}
        return {"id": path.rsplit("/", 1)[-1], "method": self.payment_method, "status": "captured"}

    def sign(self, gateway_order_id, payment_id):
        return _hmac_hex(self.key_secret, f"{gateway_order_id}|{payment_id}".encode())

    def sign_webhook(self, body: bytes):
        return _hmac_hex(self.webhook_secret, body)

    def posts(self, path):
        return [c for c in self.calls if c[0] == "POST" and c[1] == path]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def lock_service(redis_client):
    return LockService(client=redis_client)


@pytest.fixture
def gateway_factory():
    return FakeGateway


@pytest.fixture
def gateway(gateway_factory):
    return gateway_factory()


@pytest.fixture
def catalog(db):
    """
    users: 1 (with address), 2 (no address)
    products: shirt 500/450 stock 10, mug 250 no EMI, pen 60/50,
    phone with a sized black variant, tee with a red variant without sizes
    """
    now = utc_now()

    user = UserModel(id=1, name="Asha")
    user.addresses.append(
        AddressModel(country="INDIA", house_details="12 MG Road", state="Karnataka", city="Bengaluru", postal_code="560001")
    )
    db.add_all([user, UserModel(id=2, name="Ravi")])

    shirt = ProductModel(seller_id=100, title="Cotton Shirt", price=500, discounted_price=450, stock=10, emi=True)
    mug = ProductModel(seller_id=101, title="Ceramic Mug", price=250, stock=50, emi=False)
    pen = ProductModel(seller_id=101, title="Gel Pen", price=60, discounted_price=50, stock=100)
    phone = ProductModel(seller_id=100, title="Phone", price=0, stock=0, emi=True)
    tee = ProductModel(seller_id=102, title="Tee", price=0, stock=0)
    retired = ProductModel(seller_id=100, title="Retired", price=100, stock=5, is_active=False)
    db.add_all([shirt, mug, pen, phone, tee, retired])
    db.flush()

    phone_black = ProductVariantModel(
        product_id=phone.id,
        seller_id=100,
        sku="PHONE-BLK",
        variant_title="Phone Black",
        color={
            "colorName": "Black",
            "price": 20000,
            "discountedPrice": 18000,
            "stock": 10,
            "sizes": [
                {"sizeValue": "128GB", "price": 20000, "discountedPrice": 18000, "stock": 5},
                {"sizeValue": "256GB", "price": 24000, "discountedPrice": 0, "stock": 3},
            ],
        },
    )
    tee_red = ProductVariantModel(
        product_id=tee.id,
        seller_id=102,
        sku="TEE-RED",
        variant_title="Tee Red",
        color={"colorName": "Red", "price": 300, "discountedPrice": 0, "stock": 5},
    )
    db.add_all([phone_black, tee_red])

    combo = ComboOfferModel(
        title="Shirt + Mug",
        description="Shirt and mug together",
        original_price=700,
        discount_price=600,
        items=[
            ComboOfferItemModel(position=0, product_id=shirt.id, quantity=1),
            ComboOfferItemModel(position=1, product_id=mug.id, quantity=1, offer_price=200),
        ],
    )
    expired_combo = ComboOfferModel(
        title="Old bundle",
        original_price=700,
        discount_price=650,
        end_date=now - timedelta(days=1),
        items=[ComboOfferItemModel(position=0, product_id=shirt.id, quantity=1)],
    )
    db.add_all([combo, expired_combo])

    db.add_all(
        [
            CouponModel(
                code="SAVE10",
                discount_type="percentage",
                percentage_value=10,
                min_order_value=500,
                expiry_date=now + timedelta(days=30),
            ),
            CouponModel(
                code="FLAT5000",
                discount_type="flat",
                flat_value=5000,
                min_order_value=0,
                expiry_date=now + timedelta(days=30),
            ),
            CouponModel(
                code="OLD20",
                discount_type="percentage",
                percentage_value=20,
                min_order_value=0,
                expiry_date=now - timedelta(days=1),
            ),
            CouponModel(
                code="PAUSED",
                discount_type="flat",
                flat_value=10,
                min_order_value=0,
                expiry_date=now + timedelta(days=30),
                is_active=False,
            ),
        ]
    )
    db.flush()
    user.selected_address_id = user.addresses[0].id
    db.commit()

    return SimpleNamespace(
        shirt=shirt.id,
        mug=mug.id,
        pen=pen.id,
        phone=phone.id,
        phone_black=phone_black.id,
        tee=tee.id,
        tee_red=tee_red.id,
        retired=retired.id,
        combo=combo.id,
        expired_combo=expired_combo.id,
    )


@pytest.fixture
def carts(db, lock_service):
    return CartService(db, lock_service)


@pytest.fixture
def checkout(db, lock_service):
    return CheckoutService(db, lock_service)


@pytest.fixture
def orders(db, lock_service):
    return OrderService(db, lock_service)


@pytest.fixture
def payments(db, lock_service, gateway):
    return PaymentService(db, lock_service, gateway)


@pytest.fixture
def place_order(carts, checkout, catalog):
    """Fills user 1's cart and checks it out, returns the order id."""

    def _place(lines=None, payment_method="cod", idempotency_key=None):
        for product_id, quantity, extra in lines or [(catalog.shirt, 1, {}), (catalog.mug, 1, {})]:
            carts.add_item(1, product_id, quantity, **extra)
        return checkout.create_order(1, payment_method, idempotency_key)["order_id"]

    return _place


@pytest.fixture
def client(db, lock_service, gateway):
    app = create_app()
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
