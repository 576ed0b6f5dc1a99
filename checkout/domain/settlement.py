# checkout/domain/settlement.py
"""
Checkout attempt state machine.

    IDLE -> INTENT_REQUESTED -> AWAITING_EXTERNAL_CONFIRMATION -> RECONCILING
         -> SETTLED | FAILED | CANCELED

The table below is the only place that says which moves are legal. A
CANCELED attempt may still be reconciled when the provider confirms the
same intent afterwards, and may be resumed with the same intent.
"""
from dataclasses import dataclass
from enum import Enum

from checkout.domain.errors import CheckoutError, IllegalTransition
from checkout.domain.schemas import OrderProjection


class CheckoutState(str, Enum):
    IDLE = "IDLE"
    INTENT_REQUESTED = "INTENT_REQUESTED"
    AWAITING_EXTERNAL_CONFIRMATION = "AWAITING_EXTERNAL_CONFIRMATION"
    RECONCILING = "RECONCILING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


TERMINAL_STATES = frozenset({CheckoutState.SETTLED, CheckoutState.FAILED, CheckoutState.CANCELED})

TRANSITIONS = {
    CheckoutState.IDLE: {CheckoutState.INTENT_REQUESTED},
    CheckoutState.INTENT_REQUESTED: {
        CheckoutState.AWAITING_EXTERNAL_CONFIRMATION,
        CheckoutState.FAILED,
    },
    CheckoutState.AWAITING_EXTERNAL_CONFIRMATION: {
        CheckoutState.RECONCILING,
        CheckoutState.FAILED,
        CheckoutState.CANCELED,
    },
    CheckoutState.RECONCILING: {CheckoutState.SETTLED, CheckoutState.FAILED},
    CheckoutState.SETTLED: {CheckoutState.INTENT_REQUESTED},
    CheckoutState.FAILED: {CheckoutState.INTENT_REQUESTED},
    CheckoutState.CANCELED: {
        CheckoutState.INTENT_REQUESTED,
        CheckoutState.AWAITING_EXTERNAL_CONFIRMATION,
        CheckoutState.RECONCILING,
    },
}


def can_transition(current: CheckoutState, target: CheckoutState) -> bool:
    return target in TRANSITIONS.get(current, set())


def transition(current: CheckoutState, target: CheckoutState) -> CheckoutState:
    if not can_transition(current, target):
        raise IllegalTransition(f"Cannot move checkout from {current.value} to {target.value}")
    return target


@dataclass(frozen=True)
class SettlementResult:
    state: CheckoutState
    intent_id: str | None = None
    order: OrderProjection | None = None
    error: CheckoutError | None = None
    #true when the order was already settled earlier and nothing changed now
    replayed: bool = False

    @property
    def settled(self) -> bool:
        return self.state == CheckoutState.SETTLED
