# checkout/services/settlement_coordinator.py
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List

import requests

from checkout.domain.cart import CartAggregate
from checkout.domain.errors import (
    AuthorityRejected,
    CheckoutError,
    CheckoutInProgress,
    EmptyCart,
    IllegalTransition,
    InvalidLineItem,
    PaymentCanceled,
    PaymentFailed,
    PricingDesync,
    ProductNotFound,
    ReconciliationTimeout,
    TransientAuthorityError,
)
from checkout.domain.pricing import totals_match
from checkout.domain.schemas import (
    CheckoutStatus,
    IntentResponse,
    OrderProjection,
    PriceBreakdown,
    ProviderOutcome,
    ProviderOutcomeKind,
    SettlementIntent,
)
from checkout.domain.settlement import CheckoutState, SettlementResult, transition
from checkout.services.authority_client import PaymentAuthorityClient, is_paid
from checkout.services.catalog_client import CatalogClient
from checkout.services.payment_provider import PaymentProvider, failed
from checkout.utils.settings import INTENT_TTL_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

TransitionListener = Callable[[CheckoutState, "SettlementCoordinator"], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettlementCoordinator:
    """
    Drives one cart session through create-intent -> provider -> confirm.

    Suspends only on I/O: catalog validation, intent creation, the provider
    outcome and the confirm call. The remote authority is the source of truth
    for paid orders; a remote confirmation always wins over a local cancel.
    Provider failures are never retried here, the user has to start again.
    """

    def __init__(
        self,
        authority: PaymentAuthorityClient,
        catalog: CatalogClient | None = None,
        session_id: str | None = None,
        intent_ttl_seconds: int = INTENT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.authority = authority
        self.catalog = catalog
        self.session_id = session_id
        self.intent_ttl = timedelta(seconds=intent_ttl_seconds)
        self.clock = clock

        self.state = CheckoutState.IDLE
        self.attempt_id: str | None = None
        self.order: OrderProjection | None = None
        self.last_error: CheckoutError | None = None

        self._cart: CartAggregate | None = None
        self._intent: SettlementIntent | None = None
        self._canceled_intent: SettlementIntent | None = None
        self._settled: dict[str, OrderProjection] = {}
        self._listeners: List[TransitionListener] = []

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def intent(self) -> SettlementIntent | None:
        return self._intent or self._canceled_intent

    def snapshot(self) -> CheckoutStatus:
        intent = self.intent
        return CheckoutStatus(
            session_id=self.session_id,
            state=self.state.value,
            intent_id=intent.intent_id if intent else None,
            client_secret=self._intent.client_secret if self._intent else None,
            breakdown=intent.breakdown if intent else None,
            order=self.order,
            error_code=self.last_error.code if self.last_error else None,
            error_message=self.last_error.message if self.last_error else None,
        )

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    # =====================================================
    # COMMANDS
    # =====================================================
    async def begin_checkout(self, cart: CartAggregate, attempt_id: str | None = None) -> SettlementIntent:
        if self.state in (CheckoutState.INTENT_REQUESTED, CheckoutState.RECONCILING):
            raise CheckoutInProgress(f"Checkout already {self.state.value}")

        if self.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION:
            if not self._is_stale(self._intent):
                raise CheckoutInProgress("Waiting for the payment provider")
            logger.warning(f"Intent {self._intent.intent_id} abandoned, starting a fresh attempt")
            self._discard_intent()
            self._move(CheckoutState.FAILED)

        if cart.is_empty:
            raise EmptyCart("Cart is empty")

        if self.state == CheckoutState.CANCELED and self._can_resume(cart):
            logger.info(f"Resuming canceled intent {self._canceled_intent.intent_id}")
            self._intent, self._canceled_intent = self._canceled_intent, None
            self._cart = cart
            self.attempt_id = attempt_id or self.attempt_id
            self.last_error = None
            self._move(CheckoutState.AWAITING_EXTERNAL_CONFIRMATION)
            return self._intent

        self._cart = cart
        self._discard_intent()
        self.order = None
        self.last_error = None
        self.attempt_id = attempt_id or uuid.uuid4().hex
        self._move(CheckoutState.INTENT_REQUESTED)

        try:
            await self._validate_items(cart)
            local = cart.breakdown()
            fingerprint = cart.fingerprint()
            token = uuid.uuid4().hex
            items = cart.to_payload()

            logger.info(
                f"Requesting intent for attempt {self.attempt_id}: {len(cart)} lines, total {local.total}"
            )
            response = await self._call(self.authority.create_intent, items, token)
            breakdown = self._check_totals(local, response)
        except CheckoutError as e:
            self._fail(e)
            raise
        except Exception as e:
            #never leave the attempt in INTENT_REQUESTED
            self._fail(AuthorityRejected(f"Intent request failed: {e}"))
            raise

        self._intent = SettlementIntent(
            client_secret=response.client_secret,
            intent_id=response.payment_intent_id,
            idempotency_token=token,
            breakdown=breakdown,
            cart_fingerprint=fingerprint,
            items=items,
            created_at=self.clock(),
        )
        self._move(CheckoutState.AWAITING_EXTERNAL_CONFIRMATION)
        return self._intent

    async def report_provider_outcome(self, outcome: ProviderOutcome) -> SettlementResult:
        intent_id = outcome.intent_id

        if outcome.outcome == ProviderOutcomeKind.SUCCESS:
            known = intent_id or (self.intent.intent_id if self.intent else None)
            if known in self._settled:
                logger.info(f"Intent {known} already settled, returning the same order")
                return SettlementResult(CheckoutState.SETTLED, known, self._settled[known], replayed=True)

            if self.state == CheckoutState.CANCELED and self._canceled_intent:
                if intent_id and intent_id != self._canceled_intent.intent_id:
                    raise IllegalTransition(f"Outcome for unknown intent {intent_id}")
                #late confirmation after a local cancel - the payment went through
                logger.warning(f"Success for canceled intent {self._canceled_intent.intent_id}, reconciling")
                self._intent, self._canceled_intent = self._canceled_intent, None
                return await self._reconcile()

        if self.state != CheckoutState.AWAITING_EXTERNAL_CONFIRMATION:
            raise IllegalTransition(
                f"Provider outcome {outcome.outcome.value} not expected in state {self.state.value}"
            )

        if intent_id and intent_id != self._intent.intent_id:
            raise IllegalTransition(f"Outcome for unknown intent {intent_id}")

        if outcome.outcome == ProviderOutcomeKind.CANCELED:
            return self._cancel_awaiting()

        if outcome.outcome == ProviderOutcomeKind.FAILED:
            error = PaymentFailed(outcome.message or "Payment failed")
            current = self._intent.intent_id
            self._discard_intent()
            self._fail(error)
            return SettlementResult(self.state, current, error=error)

        return await self._reconcile()

    def cancel(self) -> bool:
        if self.state != CheckoutState.AWAITING_EXTERNAL_CONFIRMATION:
            logger.info(f"Cancel ignored in state {self.state.value}")
            return False
        self._cancel_awaiting()
        return True

    async def run_checkout(self, cart: CartAggregate, provider: PaymentProvider) -> SettlementResult:
        intent = await self.begin_checkout(cart)

        try:
            outcome = await provider.present(intent.client_secret)
        except Exception as e:
            logger.error(f"Payment provider crashed: {e}")
            outcome = failed(str(e))

        if outcome.intent_id is None:
            outcome = outcome.model_copy(update={"intent_id": intent.intent_id})

        return await self.report_provider_outcome(outcome)

    # =====================================================
    # INTERNALS
    # =====================================================
    async def _call(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except requests.RequestException as e:
            raise TransientAuthorityError(f"Payment authority unreachable: {e}") from e

    async def _validate_items(self, cart: CartAggregate) -> None:
        if self.catalog is None:
            return

        for line in cart.items:
            try:
                price = await asyncio.to_thread(self.catalog.validate, line.product_id)
            except ProductNotFound as e:
                raise InvalidLineItem(line.product_id, e.message) from e
            except requests.RequestException as e:
                raise InvalidLineItem(line.product_id, f"Catalog unavailable: {e}") from e

            if price != line.unit_price:
                logger.warning(
                    f"Product {line.product_id} price changed from {line.unit_price} to {price}"
                )

    def _check_totals(self, local: PriceBreakdown, response: IntentResponse) -> PriceBreakdown:
        if response.breakdown is not None:
            remote = response.breakdown.to_breakdown()
            if not totals_match(local.total, remote.total):
                raise PricingDesync(local.total, remote.total)
            return remote

        if response.amount is not None:
            #amount is in cents
            if abs(local.total_in_cents - response.amount) > 1:
                raise PricingDesync(local.total, response.amount)
            return local

        logger.warning(
            f"Intent {response.payment_intent_id} came back without a breakdown, trusting local total {local.total}"
        )
        return local

    async def _reconcile(self) -> SettlementResult:
        intent = self._intent
        self._move(CheckoutState.RECONCILING)

        try:
            confirmed = await self._call(
                self.authority.confirm_intent, intent.intent_id, intent.idempotency_token
            )
        except TransientAuthorityError as e:
            error = ReconciliationTimeout(f"Could not confirm intent {intent.intent_id}: {e.message}")
            self._discard_intent()
            self._fail(error)
            return SettlementResult(self.state, intent.intent_id, error=error)
        except AuthorityRejected as e:
            error = PaymentFailed(e.message)
            self._discard_intent()
            self._fail(error)
            return SettlementResult(self.state, intent.intent_id, error=error)
        except Exception as e:
            self._discard_intent()
            self._fail(ReconciliationTimeout(f"Could not confirm intent {intent.intent_id}: {e}"))
            raise

        if not is_paid(confirmed):
            error = PaymentFailed(f"Payment {confirmed.payment_status}")
            self._discard_intent()
            self._fail(error)
            return SettlementResult(self.state, intent.intent_id, error=error)

        order = confirmed.order.to_projection()
        self._settled[intent.intent_id] = order
        self.order = order
        self._move(CheckoutState.SETTLED)

        if self._cart is not None:
            self._cart.remove_paid(intent.items)
        #keep the settled intent visible in snapshot() until the next attempt
        self._canceled_intent, self._intent = None, intent

        logger.info(f"Intent {intent.intent_id} settled as order {order.id}")
        return SettlementResult(CheckoutState.SETTLED, intent.intent_id, order)

    def _cancel_awaiting(self) -> SettlementResult:
        intent = self._intent
        self._canceled_intent, self._intent = intent, None
        self.last_error = PaymentCanceled("Payment canceled")
        self._move(CheckoutState.CANCELED)
        return SettlementResult(self.state, intent.intent_id, error=self.last_error)

    def _can_resume(self, cart: CartAggregate) -> bool:
        intent = self._canceled_intent
        return (
            intent is not None
            and not self._is_stale(intent)
            and intent.cart_fingerprint == cart.fingerprint()
        )

    def _is_stale(self, intent: SettlementIntent | None) -> bool:
        return intent is None or self.clock() - intent.created_at > self.intent_ttl

    def _discard_intent(self) -> None:
        self._intent = None
        self._canceled_intent = None

    def _fail(self, error: CheckoutError) -> None:
        logger.error(f"Checkout attempt {self.attempt_id} failed: {error.code} {error.message}")
        self.last_error = error
        self._move(CheckoutState.FAILED)

    def _move(self, target: CheckoutState) -> None:
        previous = self.state
        self.state = transition(previous, target)
        logger.info(f"Checkout {self.session_id or '-'}: {previous.value} -> {target.value}")
        for listener in self._listeners:
            listener(target, self)
