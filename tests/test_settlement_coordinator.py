import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import requests
from pydantic import ValidationError

from checkout.domain.cart import CartAggregate
from checkout.domain.errors import (
    AuthorityRejected,
    CheckoutInProgress,
    EmptyCart,
    IllegalTransition,
    InvalidLineItem,
    PricingDesync,
    TransientAuthorityError,
)
from checkout.domain.schemas import IntentResponse, ProviderOutcome, ProviderOutcomeKind, SettlementIntent
from checkout.domain.settlement import CheckoutState
from checkout.services.payment_provider import PaymentProvider
from checkout.services.settlement_coordinator import SettlementCoordinator


def two_mugs() -> CartAggregate:
    cart = CartAggregate("USD")
    cart.add_item(product_id=1, unit_price="10.00", quantity=2)
    return cart


def success(intent_id=None) -> ProviderOutcome:
    return ProviderOutcome(outcome=ProviderOutcomeKind.SUCCESS, intent_id=intent_id, provider_ref="ch_1")


class ScriptedProvider(PaymentProvider):
    def __init__(self, outcome=None, error=None):
        self.outcome = outcome
        self.error = error
        self.presented = []

    async def present(self, client_secret):
        self.presented.append(client_secret)
        if self.error:
            raise self.error
        return self.outcome


@pytest.mark.asyncio
async def test_empty_cart_stays_idle(coordinator, authority):
    with pytest.raises(EmptyCart):
        await coordinator.begin_checkout(CartAggregate())

    assert coordinator.state == CheckoutState.IDLE
    assert authority.created == []


@pytest.mark.asyncio
async def test_begin_then_success_settles(coordinator, authority):
    cart = two_mugs()

    intent = await coordinator.begin_checkout(cart)

    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION
    assert intent.intent_id == "pi_1"
    assert intent.breakdown.total == Decimal("22.10")
    assert authority.created[0][0] == [{"productId": 1, "quantity": 2}]

    result = await coordinator.report_provider_outcome(success("pi_1"))

    assert result.settled
    assert not result.replayed
    assert result.order.id == 100
    assert result.order.breakdown.total == Decimal("22.10")
    assert coordinator.state == CheckoutState.SETTLED
    assert cart.is_empty
    assert authority.confirmed == ["pi_1"]


@pytest.mark.asyncio
async def test_pricing_desync_aborts(coordinator, authority):
    authority.total_drift = Decimal("0.05")

    with pytest.raises(PricingDesync):
        await coordinator.begin_checkout(two_mugs())

    assert coordinator.state == CheckoutState.FAILED
    assert coordinator.intent is None
    assert coordinator.last_error.code == "PRICING_DESYNC"


@pytest.mark.asyncio
async def test_one_cent_drift_is_tolerated_and_remote_wins(coordinator, authority):
    authority.total_drift = Decimal("0.01")

    intent = await coordinator.begin_checkout(two_mugs())

    assert intent.breakdown.total == Decimal("22.11")


@pytest.mark.asyncio
async def test_amount_in_cents_used_without_breakdown(coordinator, authority):
    authority.send_breakdown = False
    authority.total_drift = Decimal("0.05")

    with pytest.raises(PricingDesync):
        await coordinator.begin_checkout(two_mugs())


@pytest.mark.asyncio
async def test_unknown_product_fails_before_intent(coordinator, authority):
    cart = two_mugs()
    cart.add_item(product_id=99, unit_price="1.00")

    with pytest.raises(InvalidLineItem) as exc:
        await coordinator.begin_checkout(cart)

    assert exc.value.product_id == 99
    assert coordinator.state == CheckoutState.FAILED
    assert authority.created == []


@pytest.mark.asyncio
async def test_second_begin_while_awaiting_is_rejected(coordinator, authority):
    await coordinator.begin_checkout(two_mugs())

    with pytest.raises(CheckoutInProgress):
        await coordinator.begin_checkout(two_mugs())

    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION
    assert len(authority.created) == 1


@pytest.mark.asyncio
async def test_stale_intent_is_abandoned(authority, catalog):
    now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
    coordinator = SettlementCoordinator(
        authority=authority,
        catalog=catalog,
        intent_ttl_seconds=60,
        clock=lambda: now[0],
    )
    await coordinator.begin_checkout(two_mugs())

    now[0] += timedelta(seconds=61)
    intent = await coordinator.begin_checkout(two_mugs())

    assert intent.intent_id == "pi_2"
    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION


@pytest.mark.asyncio
async def test_late_success_after_cancel_settles(coordinator):
    cart = two_mugs()
    await coordinator.begin_checkout(cart)

    assert coordinator.cancel() is True
    assert coordinator.state == CheckoutState.CANCELED
    assert coordinator.snapshot().error_code == "PAYMENT_CANCELED"

    result = await coordinator.report_provider_outcome(success("pi_1"))

    assert result.settled
    assert coordinator.state == CheckoutState.SETTLED
    assert cart.is_empty


@pytest.mark.asyncio
async def test_duplicate_success_returns_same_order(coordinator, authority):
    await coordinator.begin_checkout(two_mugs())
    first = await coordinator.report_provider_outcome(success("pi_1"))

    second = await coordinator.report_provider_outcome(success("pi_1"))
    third = await coordinator.report_provider_outcome(success())

    assert second.replayed and third.replayed
    assert second.order == first.order == third.order
    assert authority.confirmed == ["pi_1"]
    assert coordinator.state == CheckoutState.SETTLED


@pytest.mark.asyncio
async def test_canceled_intent_is_resumed_for_same_cart(coordinator, authority):
    await coordinator.begin_checkout(two_mugs())
    coordinator.cancel()

    intent = await coordinator.begin_checkout(two_mugs())

    assert intent.intent_id == "pi_1"
    assert len(authority.created) == 1
    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION


@pytest.mark.asyncio
async def test_changed_cart_gets_new_intent_after_cancel(coordinator, authority):
    await coordinator.begin_checkout(two_mugs())
    coordinator.cancel()

    cart = two_mugs()
    cart.add_item(product_id=2, unit_price="4.99")
    intent = await coordinator.begin_checkout(cart)

    assert intent.intent_id == "pi_2"
    assert authority.created[0][1] != authority.created[1][1]


@pytest.mark.asyncio
async def test_reconciliation_timeout(coordinator, authority):
    authority.confirm_error = TransientAuthorityError("still pending")
    await coordinator.begin_checkout(two_mugs())

    result = await coordinator.report_provider_outcome(success("pi_1"))

    assert not result.settled
    assert result.error.code == "RECONCILIATION_TIMEOUT"
    assert coordinator.state == CheckoutState.FAILED
    assert coordinator.intent is None


@pytest.mark.asyncio
async def test_rejected_confirmation_fails_payment(coordinator, authority):
    authority.confirm_error = AuthorityRejected("card declined", status_code=400)
    await coordinator.begin_checkout(two_mugs())

    result = await coordinator.report_provider_outcome(success("pi_1"))

    assert result.error.code == "PAYMENT_FAILED"
    assert coordinator.state == CheckoutState.FAILED


@pytest.mark.asyncio
async def test_unpaid_confirmation_fails_payment(coordinator, authority):
    authority.payment_status = "failed"
    await coordinator.begin_checkout(two_mugs())

    result = await coordinator.report_provider_outcome(success("pi_1"))

    assert result.error.code == "PAYMENT_FAILED"
    assert coordinator.order is None


@pytest.mark.asyncio
async def test_provider_failure_keeps_cart(coordinator, authority):
    cart = two_mugs()
    await coordinator.begin_checkout(cart)

    result = await coordinator.report_provider_outcome(
        ProviderOutcome(outcome=ProviderOutcomeKind.FAILED, message="insufficient funds")
    )

    assert result.error.message == "insufficient funds"
    assert coordinator.state == CheckoutState.FAILED
    assert not cart.is_empty
    assert authority.confirmed == []


@pytest.mark.asyncio
async def test_outcome_for_other_intent_is_rejected(coordinator):
    await coordinator.begin_checkout(two_mugs())

    with pytest.raises(IllegalTransition):
        await coordinator.report_provider_outcome(success("pi_999"))

    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION


@pytest.mark.asyncio
async def test_outcome_without_checkout_is_rejected(coordinator):
    with pytest.raises(IllegalTransition):
        await coordinator.report_provider_outcome(success("pi_1"))


def test_cancel_outside_awaiting_is_ignored(coordinator):
    assert coordinator.cancel() is False
    assert coordinator.state == CheckoutState.IDLE


@pytest.mark.asyncio
async def test_unreachable_authority_fails_attempt(coordinator, authority):
    authority.create_error = requests.ConnectionError("connection refused")

    with pytest.raises(TransientAuthorityError):
        await coordinator.begin_checkout(two_mugs())

    assert coordinator.state == CheckoutState.FAILED


@pytest.mark.asyncio
async def test_run_checkout_success(coordinator):
    provider = ScriptedProvider(outcome=success())

    result = await coordinator.run_checkout(two_mugs(), provider)

    assert provider.presented == ["pi_1_secret"]
    assert result.settled
    assert result.intent_id == "pi_1"


@pytest.mark.asyncio
async def test_run_checkout_provider_crash_is_a_failure(coordinator):
    provider = ScriptedProvider(error=RuntimeError("sheet closed"))

    result = await coordinator.run_checkout(two_mugs(), provider)

    assert result.error.code == "PAYMENT_FAILED"
    assert coordinator.state == CheckoutState.FAILED


@pytest.mark.asyncio
async def test_listeners_see_every_transition(coordinator):
    seen = []
    coordinator.add_listener(lambda state, _: seen.append(state))

    await coordinator.begin_checkout(two_mugs())
    await coordinator.report_provider_outcome(success("pi_1"))

    assert seen == [
        CheckoutState.INTENT_REQUESTED,
        CheckoutState.AWAITING_EXTERNAL_CONFIRMATION,
        CheckoutState.RECONCILING,
        CheckoutState.SETTLED,
    ]


@pytest.mark.asyncio
async def test_concurrent_begin_is_serialized(coordinator, authority):
    results = await asyncio.gather(
        coordinator.begin_checkout(two_mugs()),
        coordinator.begin_checkout(two_mugs()),
        return_exceptions=True,
    )

    assert sum(isinstance(r, SettlementIntent) for r in results) == 1
    assert sum(isinstance(r, CheckoutInProgress) for r in results) == 1
    assert len(authority.created) == 1
    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION


@pytest.mark.asyncio
async def test_malformed_intent_response_fails_attempt(coordinator, authority, monkeypatch):
    create_intent = authority.create_intent
    monkeypatch.setattr(
        authority,
        "create_intent",
        lambda items, token: IntentResponse.model_validate({"paymentIntentId": "pi_x"}),
    )

    with pytest.raises(ValidationError):
        await coordinator.begin_checkout(two_mugs())

    assert coordinator.state == CheckoutState.FAILED
    assert coordinator.last_error.code == "AUTHORITY_REJECTED"

    monkeypatch.setattr(authority, "create_intent", create_intent)
    intent = await coordinator.begin_checkout(two_mugs())
    assert coordinator.state == CheckoutState.AWAITING_EXTERNAL_CONFIRMATION
    assert intent.intent_id == "pi_1"


@pytest.mark.asyncio
async def test_unexpected_confirm_error_fails_attempt(coordinator, authority):
    cart = two_mugs()
    await coordinator.begin_checkout(cart)
    authority.confirm_error = ValueError("unexpected payload")

    with pytest.raises(ValueError):
        await coordinator.report_provider_outcome(success("pi_1"))

    assert coordinator.state == CheckoutState.FAILED
    assert coordinator.last_error.code == "RECONCILIATION_TIMEOUT"
    assert coordinator.intent is None
    assert not cart.is_empty


@pytest.mark.asyncio
async def test_settle_keeps_lines_added_after_intent(coordinator):
    cart = two_mugs()
    await coordinator.begin_checkout(cart)
    cart.add_item(product_id=3, unit_price="39.90")

    result = await coordinator.report_provider_outcome(success("pi_1"))

    assert result.order.breakdown.total == Decimal("22.10")
    assert [(l.product_id, l.quantity) for l in cart.items] == [(3, 1)]
