# storefront/api/__init__.py
from fastapi import FastAPI

from storefront.api.errors import register_error_handlers
from storefront.api.middleware import RequestLoggingMiddleware
from storefront.api.routers import health, users, carts, orders, payments, coupons, combos
from storefront.utils.settings import SERVICE_NAME


def create_app() -> FastAPI:
    app = FastAPI(
        title="Storefront Service",
        version="1.0.0",
    )

    app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)
    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(payments.router)
    app.include_router(coupons.router)
    app.include_router(combos.router)

    return app
