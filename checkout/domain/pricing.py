# checkout/domain/pricing.py
"""
Order pricing.

The breakdown has to match the payment authority to the cent, so every
component is rounded on its own and the total is the sum of the rounded parts.
"""
from decimal import Decimal, ROUND_HALF_UP

from checkout.domain.errors import InvalidCartState
from checkout.domain.schemas import PriceBreakdown

GOVERNMENT_TAX_RATE = Decimal("0.0725")
PLATFORM_FEE_RATE = Decimal("0.0325")

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    #float goes through str, otherwise 0.1 becomes 0.1000000000000000055511151231257827
    return Decimal(str(value))


def round2(value) -> Decimal:
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_breakdown(subtotal) -> PriceBreakdown:
    subtotal = to_decimal(subtotal)

    if subtotal < 0:
        raise InvalidCartState(f"Subtotal cannot be negative: {subtotal}")

    government_tax = round2(subtotal * GOVERNMENT_TAX_RATE)
    platform_fee = round2(subtotal * PLATFORM_FEE_RATE)
    rounded_subtotal = round2(subtotal)

    return PriceBreakdown(
        subtotal=rounded_subtotal,
        government_tax=government_tax,
        platform_fee=platform_fee,
        total=rounded_subtotal + government_tax + platform_fee,
        government_tax_rate=GOVERNMENT_TAX_RATE,
        platform_fee_rate=PLATFORM_FEE_RATE,
    )


def totals_match(local_total, remote_total, tolerance: Decimal = CENT) -> bool:
    return abs(to_decimal(local_total) - to_decimal(remote_total)) <= tolerance
