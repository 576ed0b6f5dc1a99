# checkout/api/__init__.py
from fastapi import FastAPI
from checkout.api.routers import carts, checkout, orders, health


def create_app() -> FastAPI:
    app = FastAPI(
        title="Checkout Service",
        version="1.0.0",
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)

    return app
