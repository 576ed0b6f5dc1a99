import json
from decimal import Decimal

import pytest
import requests

from checkout.domain.errors import AuthorityRejected, TransientAuthorityError
from checkout.services.auth_session import AuthSession
from checkout.services.authority_client import PaymentAuthorityClient, is_paid
from checkout.utils.settings import RECONCILE_MAX_ATTEMPTS

BASE = "http://pay.test/api"

ORDER = {
    "id": 7,
    "orderNumber": "ORD-0007",
    "subtotal": "20.00",
    "governmentTax": "1.45",
    "platformFee": "0.65",
    "total": "22.10",
    "stripePaymentIntentId": "pi_1",
    "paymentStatus": "succeeded",
    "status": "confirmed",
    "orderItems": [{"productId": 1, "name": "Mug", "price": "10.00", "quantity": 2}],
}


def make_response(status: int, body: dict | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(body).encode() if body is not None else b""
    return resp


class Recorder:
    """Stands in for requests.request, replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {}), **kwargs})
        return self.responses.pop(0)


@pytest.fixture
def auth():
    return AuthSession(access_token="t1", refresh_token="r1", base_url=BASE)


@pytest.fixture
def client(auth):
    return PaymentAuthorityClient(base_url=BASE, auth=auth, timeout=1)


def test_create_intent_sends_idempotency_key(monkeypatch, client):
    rec = Recorder(
        make_response(
            200,
            {
                "status": "success",
                "data": {
                    "clientSecret": "pi_1_secret",
                    "paymentIntentId": "pi_1",
                    "amount": 2210,
                    "breakdown": {
                        "subtotal": "20.00",
                        "governmentTax": "1.45",
                        "platformFee": "0.65",
                        "total": "22.10",
                    },
                },
            },
        )
    )
    monkeypatch.setattr(requests, "request", rec)

    intent = client.create_intent([{"productId": 1, "quantity": 2}], "tok-1")

    call = rec.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == f"{BASE}/payments/create-payment-intent"
    assert call["headers"]["Idempotency-Key"] == "tok-1"
    assert call["headers"]["Authorization"] == "Bearer t1"
    assert call["json"] == {"items": [{"productId": 1, "quantity": 2}]}
    assert intent.payment_intent_id == "pi_1"
    assert intent.breakdown.to_breakdown().total == Decimal("22.10")


def test_server_errors_are_retried_with_same_key(monkeypatch, client):
    ok = make_response(200, {"data": {"clientSecret": "s", "paymentIntentId": "pi_1"}})
    rec = Recorder(make_response(503), make_response(429), ok)
    monkeypatch.setattr(requests, "request", rec)

    intent = client.create_intent([], "tok-1")

    assert intent.client_secret == "s"
    assert len(rec.calls) == 3
    assert {c["headers"]["Idempotency-Key"] for c in rec.calls} == {"tok-1"}


def test_client_errors_are_not_retried(monkeypatch, client):
    rec = Recorder(make_response(400, {"status": "fail", "message": "Product 9 out of stock"}))
    monkeypatch.setattr(requests, "request", rec)

    with pytest.raises(AuthorityRejected) as exc:
        client.create_intent([{"productId": 9, "quantity": 1}], "tok-1")

    assert exc.value.message == "Product 9 out of stock"
    assert exc.value.status_code == 400
    assert len(rec.calls) == 1


def test_expired_token_is_refreshed_once(monkeypatch, client, auth):
    rec = Recorder(make_response(401), make_response(200, {"data": {"order": ORDER}}))
    monkeypatch.setattr(requests, "request", rec)
    monkeypatch.setattr(
        requests,
        "post",
        lambda url, json=None, timeout=None: make_response(
            200, {"success": True, "accessToken": "t2", "refreshToken": "r2"}
        ),
    )

    order = client.get_order(7)

    assert order.id == 7
    assert rec.calls[1]["headers"]["Authorization"] == "Bearer t2"
    assert auth.refresh_count == 1


def test_confirm_returns_order(monkeypatch, client):
    rec = Recorder(make_response(200, {"data": {"order": ORDER, "paymentStatus": "succeeded"}}))
    monkeypatch.setattr(requests, "request", rec)

    confirmed = client.confirm_intent("pi_1", "tok-1")

    assert rec.calls[0]["json"] == {"paymentIntentId": "pi_1"}
    assert is_paid(confirmed)
    projection = confirmed.order.to_projection()
    assert projection.intent_id == "pi_1"
    assert projection.items[0].quantity == 2


def test_pending_confirmation_gives_up_after_max_attempts(monkeypatch, client):
    pending = {"data": {"order": {**ORDER, "paymentStatus": "pending"}, "paymentStatus": "processing"}}
    rec = Recorder(*[make_response(200, pending) for _ in range(RECONCILE_MAX_ATTEMPTS)])
    monkeypatch.setattr(requests, "request", rec)

    with pytest.raises(TransientAuthorityError):
        client.confirm_intent("pi_1", "tok-1")

    assert len(rec.calls) == RECONCILE_MAX_ATTEMPTS


def test_list_orders(monkeypatch, client):
    rec = Recorder(make_response(200, {"data": {"orders": [ORDER]}}))
    monkeypatch.setattr(requests, "request", rec)

    page = client.list_orders(page=2, limit=5)

    assert rec.calls[0]["params"] == {"page": 2, "limit": 5}
    assert page.page == 2
    assert [o.order_number for o in page.orders] == ["ORD-0007"]


def test_malformed_response_is_rejected(monkeypatch, client):
    rec = Recorder(make_response(200, {"data": {"paymentIntentId": "pi_x"}}))
    monkeypatch.setattr(requests, "request", rec)

    with pytest.raises(AuthorityRejected):
        client.create_intent([{"productId": 1, "quantity": 1}], "tok-1")

    assert len(rec.calls) == 1


def test_malformed_confirmation_is_rejected(monkeypatch, client):
    rec = Recorder(make_response(200, {"data": {"paymentStatus": "succeeded"}}))
    monkeypatch.setattr(requests, "request", rec)

    with pytest.raises(AuthorityRejected):
        client.confirm_intent("pi_1", "tok-1")
