from checkout.domain.cart import CartAggregate, LineItem
from checkout.domain.pricing import compute_breakdown, round2
from checkout.domain.settlement import CheckoutState, SettlementResult

__all__ = [
    "CartAggregate",
    "LineItem",
    "compute_breakdown",
    "round2",
    "CheckoutState",
    "SettlementResult",
]
