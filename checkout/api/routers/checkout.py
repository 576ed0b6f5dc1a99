# checkout/api/routers/checkout.py
from fastapi import APIRouter, Depends

from checkout.api.deps import get_service
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.schemas import CheckoutStatus, ProviderOutcome
from checkout.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.get("/{session_id}", response_model=CheckoutStatus)
def get_status(session_id: str, svc: CheckoutService = Depends(get_service)):
    return svc.status(session_id)


@router.post("/{session_id}", response_model=CheckoutStatus)
async def begin_checkout(session_id: str, svc: CheckoutService = Depends(get_service)):
    """
    Prices the cart, checks it against the payment backend and returns the
    client secret for the payment sheet.
    """
    try:
        return await svc.begin_checkout(session_id)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{session_id}/outcome", response_model=CheckoutStatus)
async def report_outcome(
    session_id: str,
    payload: ProviderOutcome,
    svc: CheckoutService = Depends(get_service),
):
    """
    Payment sheet result. Payment failures and timeouts come back as a
    FAILED status with error_code set, not as an HTTP error.
    """
    try:
        return await svc.report_outcome(session_id, payload)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{session_id}/cancel", response_model=CheckoutStatus)
def cancel(session_id: str, svc: CheckoutService = Depends(get_service)):
    return svc.cancel(session_id)
