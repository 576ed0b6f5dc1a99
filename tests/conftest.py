import time
from decimal import Decimal
from typing import Dict, Generator
from unittest.mock import MagicMock

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import checkout.data.models  # noqa: F401
from checkout.api import create_app
from checkout.api.deps import get_service
from checkout.data.database import Base
from checkout.domain.errors import AuthorityRejected, ProductNotFound
from checkout.domain.pricing import compute_breakdown
from checkout.domain.schemas import ConfirmResponse, IntentResponse, WireBreakdown, WireOrder
from checkout.services.catalog_client import CatalogClient
from checkout.services.checkout_service import CheckoutService, CoordinatorRegistry
from checkout.services.lock_service import LockService
from checkout.services.settlement_coordinator import SettlementCoordinator


PRODUCTS = {
    1: {"id": 1, "name": "Mug", "price": "10.00", "currency": "USD"},
    2: {"id": 2, "name": "Poster", "price": "4.99", "currency": "USD"},
    3: {"id": 3, "name": "Hoodie", "price": "39.90", "currency": "USD"},
}


class FakeCatalog(CatalogClient):
    """Catalog with the HTTP call replaced by a dict lookup."""

    def __init__(self, products: Dict[int, dict] | None = None):
        super().__init__(base_url="http://catalog.test")
        self.products = {k: dict(v) for k, v in (products or PRODUCTS).items()}
        self.calls = 0

    def fetch_product(self, product_id: int) -> dict:
        self.calls += 1
        if product_id not in self.products:
            raise ProductNotFound(f"Product {product_id} not found")
        return dict(self.products[product_id])


class FakeAuthority:
    """
    Payment backend double: prices the items the same way the server does,
    creates one order per intent and confirms idempotently.
    """

    def __init__(self, catalog: FakeCatalog):
        self.catalog = catalog
        self.created = []
        self.confirmed = []
        self.orders: Dict[str, WireOrder] = {}
        self.breakdowns = {}
        #added to the remote total to simulate server-side price drift
        self.total_drift = Decimal("0")
        self.send_breakdown = True
        self.payment_status = "succeeded"
        self.confirm_error: Exception | None = None
        self.create_error: Exception | None = None

    def create_intent(self, items, idempotency_token):
        if self.create_error:
            raise self.create_error
        self.created.append((items, idempotency_token))

        subtotal = sum(
            Decimal(self.catalog.products[i["productId"]]["price"]) * i["quantity"] for i in items
        )
        local = compute_breakdown(subtotal)
        intent_id = f"pi_{len(self.created)}"
        remote = WireBreakdown(
            subtotal=local.subtotal,
            government_tax=local.government_tax,
            platform_fee=local.platform_fee,
            total=local.total + self.total_drift,
        )
        self.breakdowns[intent_id] = remote

        return IntentResponse(
            client_secret=f"{intent_id}_secret",
            payment_intent_id=intent_id,
            amount=int(remote.total * 100),
            breakdown=remote if self.send_breakdown else None,
        )

    def confirm_intent(self, intent_id, idempotency_token=None):
        self.confirmed.append(intent_id)
        if self.confirm_error:
            raise self.confirm_error

        if intent_id not in self.orders:
            b = self.breakdowns[intent_id]
            self.orders[intent_id] = WireOrder(
                id=100 + len(self.orders),
                order_number=f"ORD-{len(self.orders) + 1:04d}",
                subtotal=b.subtotal,
                government_tax=b.government_tax,
                platform_fee=b.platform_fee,
                total=b.total,
                stripe_payment_intent_id=intent_id,
                payment_status=self.payment_status,
                status="confirmed" if self.payment_status == "succeeded" else "pending",
            )
        return ConfirmResponse(order=self.orders[intent_id], payment_status=self.payment_status)

    def get_order(self, order_id):
        for order in self.orders.values():
            if order.id == order_id:
                return order.to_projection()
        raise AuthorityRejected("Order not found", status_code=404)

    def list_orders(self, page=1, limit=10):
        raise NotImplementedError


@pytest.fixture(autouse=True)
def _no_retry_sleep(monkeypatch):
    #tenacity sleeps through time.sleep
    monkeypatch.setattr(time, "sleep", lambda _: None)


@pytest.fixture
def db() -> Generator:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def authority(catalog) -> FakeAuthority:
    return FakeAuthority(catalog)


@pytest.fixture
def coordinator(authority, catalog) -> SettlementCoordinator:
    return SettlementCoordinator(authority=authority, catalog=catalog, session_id="sess-1")


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def lock_service(redis_client) -> LockService:
    return LockService(client=redis_client)


@pytest.fixture
def registry(authority, catalog) -> CoordinatorRegistry:
    return CoordinatorRegistry(
        lambda session_id: SettlementCoordinator(authority=authority, catalog=catalog, session_id=session_id)
    )


@pytest.fixture
def notifications():
    return MagicMock()


@pytest.fixture
def service(db, catalog, authority, registry, lock_service, notifications) -> CheckoutService:
    return CheckoutService(
        db=db,
        catalog=catalog,
        authority=authority,
        registry=registry,
        lock_service=lock_service,
        notifications=notifications,
    )


@pytest.fixture
def client(service) -> Generator[TestClient, None, None]:
    app = create_app()
    app.dependency_overrides[get_service] = lambda: service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
