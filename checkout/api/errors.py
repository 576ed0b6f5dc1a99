# checkout/api/errors.py
from fastapi import HTTPException

from checkout.domain.errors import (
    AuthorityRejected,
    CartNotFound,
    CheckoutError,
    CheckoutInProgress,
    ConcurrentModification,
    IllegalTransition,
    OrderNotFound,
    PricingDesync,
    ProductNotFound,
    TransientAuthorityError,
)

STATUS_CODES = {
    CartNotFound: 404,
    OrderNotFound: 404,
    ProductNotFound: 404,
    CheckoutInProgress: 409,
    ConcurrentModification: 409,
    IllegalTransition: 409,
    PricingDesync: 409,
    AuthorityRejected: 502,
    TransientAuthorityError: 503,
}


def to_http(e: CheckoutError) -> HTTPException:
    #most specific class wins (IllegalTransition before InvalidCartState)
    status = next((STATUS_CODES[c] for c in type(e).__mro__ if c in STATUS_CODES), 400)
    return HTTPException(status_code=status, detail={"code": e.code, "message": e.message})
