# checkout/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException

from checkout.api.deps import get_service
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.schemas import CartOut, CreateCartIn, ItemIn, PriceBreakdown, QuantityIn
from checkout.services.checkout_service import CheckoutService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.post("/", response_model=CartOut)
def create_cart(payload: CreateCartIn, svc: CheckoutService = Depends(get_service)):
    return svc.create_cart(payload.session_id, payload.currency)


@router.get("/{session_id}", response_model=CartOut)
def get_cart(session_id: str, svc: CheckoutService = Depends(get_service)):
    cart = svc.get_cart(session_id)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@router.post("/{session_id}/items", response_model=CartOut)
def add_item(session_id: str, payload: ItemIn, svc: CheckoutService = Depends(get_service)):
    try:
        return svc.add_item(
            session_id=session_id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            currency=payload.currency,
        )
    except CheckoutError as e:
        raise to_http(e)


@router.patch("/{session_id}/items/{line_id}", response_model=CartOut)
def update_quantity(
    session_id: str,
    line_id: int,
    payload: QuantityIn,
    svc: CheckoutService = Depends(get_service),
):
    try:
        return svc.update_quantity(session_id, line_id, payload.quantity)
    except CheckoutError as e:
        raise to_http(e)


@router.delete("/{session_id}/items/{line_id}", response_model=CartOut)
def remove_item(session_id: str, line_id: int, svc: CheckoutService = Depends(get_service)):
    try:
        return svc.remove_item(session_id, line_id)
    except CheckoutError as e:
        raise to_http(e)


@router.delete("/{session_id}/items", response_model=CartOut)
def clear_cart(session_id: str, svc: CheckoutService = Depends(get_service)):
    try:
        return svc.clear(session_id)
    except CheckoutError as e:
        raise to_http(e)


@router.get("/{session_id}/breakdown", response_model=PriceBreakdown)
def get_breakdown(session_id: str, svc: CheckoutService = Depends(get_service)):
    try:
        return svc.get_breakdown(session_id)
    except CheckoutError as e:
        raise to_http(e)
