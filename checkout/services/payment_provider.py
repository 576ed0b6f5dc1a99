# checkout/services/payment_provider.py
from checkout.domain.schemas import ProviderOutcome, ProviderOutcomeKind


class PaymentProvider:
    """Payment-provider SDK seam: show the payment UI for a client secret, report the outcome."""

    async def present(self, client_secret: str) -> ProviderOutcome:
        raise NotImplementedError


def failed(message: str, provider_ref: str | None = None) -> ProviderOutcome:
    return ProviderOutcome(outcome=ProviderOutcomeKind.FAILED, message=message, provider_ref=provider_ref)
