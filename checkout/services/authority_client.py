# checkout/services/authority_client.py
from typing import Any, Dict, List

import requests
from pydantic import ValidationError

from checkout.domain.errors import AuthorityRejected, TransientAuthorityError
from checkout.domain.schemas import (
    ConfirmResponse,
    IntentResponse,
    OrderProjection,
    OrdersPage,
    OrdersResponse,
    WireOrder,
)
from checkout.services.auth_session import AuthSession
from checkout.utils.retry import http_retry, reconcile_retry
from checkout.utils.settings import PAYMENT_API_URL, HTTP_TIMEOUT_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

PAID_STATUSES = frozenset({"succeeded", "paid"})
PENDING_STATUSES = frozenset({"pending", "processing", "requires_capture"})


class PaymentAuthorityClient:
    """
    HTTP client for the order/payment backend.

    Both intent calls carry the attempt's idempotency key, so tenacity can
    resend them after a timeout without creating a second intent or order.
    """

    def __init__(
        self,
        base_url: str | None = None,
        auth: AuthSession | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or PAYMENT_API_URL).rstrip("/")
        self.auth = auth or AuthSession(base_url=self.base_url)
        self.timeout = timeout or HTTP_TIMEOUT_SECONDS

    def _send(self, method: str, url: str, headers: dict, **kwargs) -> requests.Response:
        return requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)

    def _request(
        self,
        method: str,
        path: str,
        idempotency_key: str | None = None,
        **kwargs,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json", **self.auth.headers()}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        logger.info(f"PaymentAuthorityClient {method} {url}")
        resp = self._send(method, url, headers, **kwargs)

        if resp.status_code == 401 and self.auth.access_token is not None:
            stale = self.auth.access_token
            token = self.auth.refresh(stale)
            headers["Authorization"] = f"Bearer {token}"
            resp = self._send(method, url, headers, **kwargs)

        if resp.status_code == 429 or resp.status_code >= 500:
            logger.warning(f"{method} {url} -> {resp.status_code}, will retry")
            raise TransientAuthorityError(f"Payment authority returned {resp.status_code}")

        body = resp.json() if resp.content else {}

        if resp.status_code >= 400 or body.get("status") == "fail":
            message = body.get("message") or f"Payment authority returned {resp.status_code}"
            raise AuthorityRejected(message, status_code=resp.status_code)

        return body.get("data") or {}

    @staticmethod
    def _parse(model, data: Dict[str, Any]):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed {model.__name__} from payment authority: {e}")
            raise AuthorityRejected(f"Malformed {model.__name__} from payment authority") from e

    @http_retry()
    def create_intent(self, items: List[Dict[str, Any]], idempotency_token: str) -> IntentResponse:
        data = self._request(
            "POST",
            "/payments/create-payment-intent",
            idempotency_key=idempotency_token,
            json={"items": items},
        )
        return self._parse(IntentResponse, data)

    @reconcile_retry()
    def confirm_intent(self, intent_id: str, idempotency_token: str | None = None) -> ConfirmResponse:
        data = self._request(
            "POST",
            "/payments/confirm-payment",
            idempotency_key=idempotency_token,
            json={"paymentIntentId": intent_id},
        )
        confirmed = self._parse(ConfirmResponse, data)

        if confirmed.payment_status.lower() in PENDING_STATUSES:
            #provider has not settled it yet, ask again
            raise TransientAuthorityError(
                f"Intent {intent_id} still {confirmed.payment_status}"
            )
        return confirmed

    @http_retry()
    def get_order(self, order_id: int) -> OrderProjection:
        data = self._request("GET", f"/payments/orders/{order_id}")
        return self._parse(WireOrder, data.get("order", data)).to_projection()

    @http_retry()
    def list_orders(self, page: int = 1, limit: int = 10) -> OrdersPage:
        data = self._request("GET", "/payments/history", params={"page": page, "limit": limit})
        parsed = self._parse(OrdersResponse, data)
        return OrdersPage(
            orders=[o.to_projection() for o in parsed.orders],
            page=page,
            limit=limit,
        )


def is_paid(confirmed: ConfirmResponse) -> bool:
    return (
        confirmed.payment_status.lower() in PAID_STATUSES
        or confirmed.order.payment_status.lower() in PAID_STATUSES
    )
