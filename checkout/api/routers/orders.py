# checkout/api/routers/orders.py
from fastapi import APIRouter, Depends, Query

from checkout.api.deps import get_service
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.schemas import OrderProjection, OrdersPage
from checkout.services.checkout_service import CheckoutService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/", response_model=OrdersPage)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    svc: CheckoutService = Depends(get_service),
):
    try:
        return svc.list_orders(page=page, limit=limit)
    except CheckoutError as e:
        raise to_http(e)


@router.get("/{order_id}", response_model=OrderProjection)
def get_order(order_id: int, svc: CheckoutService = Depends(get_service)):
    try:
        return svc.get_order(order_id)
    except CheckoutError as e:
        raise to_http(e)
