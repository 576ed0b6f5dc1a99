# checkout/services/checkout_service.py
import uuid
from typing import Any, Callable, Dict

import requests
from sqlalchemy.orm import Session

from checkout.domain.cart import CartAggregate
from checkout.domain.errors import (
    AuthorityRejected,
    CartNotFound,
    CheckoutInProgress,
    OrderNotFound,
    TransientAuthorityError,
)
from checkout.domain.schemas import (
    CheckoutStatus,
    OrderProjection,
    OrdersPage,
    PriceBreakdown,
    ProviderOutcome,
    SettlementIntent,
)
from checkout.domain.settlement import CheckoutState, TERMINAL_STATES
from checkout.repos.attempt_repo import AttemptRepo
from checkout.repos.cart_repo import CartRepo
from checkout.repos.order_repo import OrderRepo
from checkout.services.authority_client import PaymentAuthorityClient
from checkout.services.catalog_client import CatalogClient
from checkout.services.lock_service import LockService
from checkout.services.notification_service import NotificationService
from checkout.services.settlement_coordinator import SettlementCoordinator
from checkout.utils.settings import CHECKOUT_LOCK_TTL_SECONDS, DEFAULT_CURRENCY
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class CoordinatorRegistry:
    """One coordinator per cart session, kept for the life of the process."""

    def __init__(self, factory: Callable[[str], SettlementCoordinator]):
        self._factory = factory
        self._coordinators: Dict[str, SettlementCoordinator] = {}

    def get(self, session_id: str) -> SettlementCoordinator:
        if session_id not in self._coordinators:
            self._coordinators[session_id] = self._factory(session_id)
        return self._coordinators[session_id]

    def peek(self, session_id: str) -> SettlementCoordinator | None:
        return self._coordinators.get(session_id)


class CheckoutService:
    """
    Session context for the storefront client.

    commands (add, update, remove, clear, begin, report, cancel) change state,
    queries (get_cart, get_breakdown, status, orders) only read
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogClient,
        authority: PaymentAuthorityClient,
        registry: CoordinatorRegistry,
        lock_service: LockService | None = None,
        notifications: NotificationService | None = None,
    ):
        self.carts = CartRepo(db)
        self.attempts = AttemptRepo(db)
        self.orders = OrderRepo(db)
        self.catalog = catalog
        self.authority = authority
        self.registry = registry
        self.lock_service = lock_service
        self.notifications = notifications

    # =====================================================
    # QUERY
    # =====================================================
    def get_cart(self, session_id: str) -> Dict[str, Any] | None:
        loaded = self.carts.load(session_id)
        if not loaded:
            return None
        cart, _ = loaded
        return self._cart_out(session_id, cart)

    def get_breakdown(self, session_id: str) -> PriceBreakdown:
        cart, _ = self._load(session_id)
        return cart.breakdown()

    def status(self, session_id: str) -> CheckoutStatus:
        coordinator = self.registry.peek(session_id)
        if coordinator is None:
            return CheckoutStatus(session_id=session_id, state=CheckoutState.IDLE.value)
        return coordinator.snapshot()

    def get_order(self, order_id: int) -> OrderProjection:
        try:
            order = self.authority.get_order(order_id)
        except (TransientAuthorityError, requests.RequestException) as e:
            logger.warning(f"Payment authority unavailable, serving order {order_id} from local copy: {e}")
            row = self.orders.get_order(order_id)
            if not row:
                raise OrderNotFound(f"Order {order_id} not found")
            return self.orders.to_projection(row)
        except AuthorityRejected as e:
            if e.status_code == 404:
                raise OrderNotFound(f"Order {order_id} not found") from e
            raise

        self.orders.upsert_projection(order)
        return order

    def list_orders(self, page: int = 1, limit: int = 10) -> OrdersPage:
        return self.authority.list_orders(page=page, limit=limit)

    # =====================================================
    # CART COMMANDS
    # =====================================================
    def create_cart(self, session_id: str, currency: str | None = None) -> Dict[str, Any]:
        existing = self.carts.load(session_id)
        if existing:
            logger.info(f"Session {session_id} already has a cart")
            return self._cart_out(session_id, existing[0])

        created = self.carts.create_cart(session_id, (currency or DEFAULT_CURRENCY).upper())
        logger.info(f"Created cart for session {session_id}")
        return self._cart_out(session_id, CartAggregate(created.currency))

    def add_item(
        self,
        session_id: str,
        product_id: int,
        quantity: int = 1,
        currency: str | None = None,
    ) -> Dict[str, Any]:
        cart, version = self._load(session_id)

        #price always comes from the catalog, never from the client
        logger.info(f"Fetching product {product_id} from catalog")
        product = self.catalog.fetch_product(product_id)
        price = self.catalog.price_of(product, product_id)

        line = cart.add_item(
            product_id=product_id,
            unit_price=price,
            quantity=quantity,
            currency=self.catalog.currency_of(product) or currency,
        )
        self.carts.save(session_id, cart, version)

        logger.info(f"Product {product_id} in cart {session_id} now x{line.quantity}")
        return self._cart_out(session_id, cart)

    def update_quantity(self, session_id: str, line_id: int, quantity: int) -> Dict[str, Any]:
        cart, version = self._load(session_id)
        cart.update_quantity(line_id, quantity)
        self.carts.save(session_id, cart, version)
        return self._cart_out(session_id, cart)

    def remove_item(self, session_id: str, line_id: int) -> Dict[str, Any]:
        cart, version = self._load(session_id)
        cart.remove_item(line_id)
        self.carts.save(session_id, cart, version)
        return self._cart_out(session_id, cart)

    def clear(self, session_id: str) -> Dict[str, Any]:
        cart, version = self._load(session_id)
        cart.clear()
        self.carts.save(session_id, cart, version)
        return self._cart_out(session_id, cart)

    # =====================================================
    # CHECKOUT COMMANDS
    # =====================================================
    async def begin_checkout(self, session_id: str) -> CheckoutStatus:
        cart, _ = self._load(session_id)
        coordinator = self.registry.get(session_id)
        attempt_id = uuid.uuid4().hex

        if self.lock_service and not self.lock_service.acquire_checkout_lock(
            session_id=session_id,
            attempt_id=attempt_id,
            ttl=CHECKOUT_LOCK_TTL_SECONDS,
        ):
            raise CheckoutInProgress(f"Checkout already running for session {session_id}")

        try:
            await coordinator.begin_checkout(cart, attempt_id=attempt_id)
        except Exception:
            self._release(session_id, attempt_id)
            if coordinator.attempt_id == attempt_id:
                self._record(coordinator)
            raise

        self._record(coordinator)
        return coordinator.snapshot()

    async def report_outcome(self, session_id: str, outcome: ProviderOutcome) -> CheckoutStatus:
        coordinator = self.registry.get(session_id)
        try:
            result = await coordinator.report_provider_outcome(outcome)
            if result.settled and not result.replayed:
                self._on_settled(session_id, result.order, coordinator.intent)
        finally:
            if coordinator.state in TERMINAL_STATES:
                self._release(session_id, coordinator.attempt_id)
            self._record(coordinator)

        status = coordinator.snapshot()
        if result.settled:
            status = status.model_copy(update={"state": CheckoutState.SETTLED.value, "order": result.order})
        return status

    def cancel(self, session_id: str) -> CheckoutStatus:
        coordinator = self.registry.get(session_id)
        if coordinator.cancel():
            self._release(session_id, coordinator.attempt_id)
            self._record(coordinator)
        return coordinator.snapshot()

    # =====================================================
    # INTERNALS
    # =====================================================
    def _load(self, session_id: str):
        loaded = self.carts.load(session_id)
        if not loaded:
            raise CartNotFound(f"No cart for session {session_id}")
        return loaded

    def _on_settled(self, session_id: str, order: OrderProjection, intent: SettlementIntent | None) -> None:
        loaded = self.carts.load(session_id)
        if loaded and intent:
            cart, version = loaded
            #only what the intent charged for, the cart may have changed since
            cart.remove_paid(intent.items)
            self.carts.save(session_id, cart, version)

        self.orders.upsert_projection(order, session_id=session_id)

        if self.notifications:
            self.notifications.send_order_confirmed(session_id, order.id, str(order.breakdown.total))

    def _record(self, coordinator: SettlementCoordinator) -> None:
        if not coordinator.attempt_id:
            return
        intent = coordinator.intent
        self.attempts.record(
            attempt_id=coordinator.attempt_id,
            session_id=coordinator.session_id,
            state=coordinator.state,
            intent_id=intent.intent_id if intent else None,
            idempotency_token=intent.idempotency_token if intent else None,
            total=intent.breakdown.total if intent else None,
            error_code=coordinator.last_error.code if coordinator.last_error else None,
        )

    def _release(self, session_id: str, attempt_id: str | None) -> None:
        if self.lock_service and attempt_id:
            self.lock_service.release_checkout_lock(session_id, attempt_id)

    @staticmethod
    def _cart_out(session_id: str, cart: CartAggregate) -> Dict[str, Any]:
        totals = cart.totals()
        return {
            "session_id": session_id,
            "currency": cart.currency,
            "items": [
                {
                    "line_id": l.line_id,
                    "product_id": l.product_id,
                    "unit_price": l.unit_price,
                    "quantity": l.quantity,
                    "currency": l.currency,
                }
                for l in cart.items
            ],
            "total_items": totals.total_items,
            "total_price": totals.total_price,
        }
