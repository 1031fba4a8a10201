import base64
import json

import httpx
import pytest

from cursoshub.errors import GatewayRejectedError, GatewayTransportError
from cursoshub.payments.gateway import GENERIC_GATEWAY_ERROR, PagarmeGateway, extract_error_message
from cursoshub.payments.order import Order, Payment, build_customer, build_line_items


@pytest.fixture
def order():
    return Order(
        line_items=build_line_items(["c1", "c2"], {
            "c1": {"id": "c1", "title": "Python", "price": 50.0},
            "c2": {"id": "c2", "title": "FastAPI", "price": 75.5},
        }),
        customer=build_customer("maria@example.com", {"name": "Maria", "document": "12345678909", "phone": "11987654321"}, "55"),
        payment=Payment(card_token="tok_secret", statement_descriptor="CURSOS HUB"),
    )


def _gateway(handler):
    return PagarmeGateway("sk_test", base_url="https://api.pagar.me/core/v5", transport=httpx.MockTransport(handler))


def test_create_order_posts_payload_with_basic_auth(order):
    seen = {}

    def handler(request: httpx.Request):
        seen["request"] = request
        return httpx.Response(200, json={"id": "or_1", "status": "paid"})

    response = _gateway(handler).submit(order)

    request = seen["request"]
    assert request.method == "POST"
    assert str(request.url) == "https://api.pagar.me/core/v5/orders"
    assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"sk_test:").decode()
    body = json.loads(request.content)
    assert [i["amount"] for i in body["items"]] == [5000, 7550]
    assert body["payments"][0]["credit_card"]["card_token"] == "tok_secret"
    assert response.ok is True
    assert response.status == "paid"
    assert response.data == {"id": "or_1", "status": "paid"}


def test_non_paid_status_is_returned_verbatim(order):
    gateway = _gateway(lambda r: httpx.Response(200, json={"id": "or_2", "status": "pending", "charges": []}))
    response = gateway.submit(order)
    assert response.status == "pending"
    assert response.data["charges"] == []


def test_rejection_uses_gateway_message(order):
    gateway = _gateway(lambda r: httpx.Response(400, json={"message": "card declined"}))
    with pytest.raises(GatewayRejectedError) as exc:
        gateway.submit(order)
    assert exc.value.message == "card declined"
    assert exc.value.gateway_status == 400
    assert exc.value.payload == {"message": "card declined"}


def test_create_order_does_not_raise_on_rejection(order):
    gateway = _gateway(lambda r: httpx.Response(422, json={"errors": {"card": ["invalid"]}}))
    response = gateway.create_order(order)
    assert response.ok is False
    assert response.status_code == 422


def test_rejection_falls_back_to_errors_then_generic():
    assert extract_error_message({"errors": {"card": ["invalid"]}}) == json.dumps({"card": ["invalid"]})
    assert extract_error_message({}) == GENERIC_GATEWAY_ERROR
    assert extract_error_message(None) == GENERIC_GATEWAY_ERROR


def test_transport_failure(order):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(GatewayTransportError):
        _gateway(handler).submit(order)


def test_invalid_json_is_transport_failure(order):
    gateway = _gateway(lambda r: httpx.Response(502, content=b"<html>bad gateway</html>"))
    with pytest.raises(GatewayTransportError):
        gateway.submit(order)


def test_card_token_never_logged(order, caplog):
    caplog.set_level("DEBUG")
    with pytest.raises(GatewayRejectedError):
        _gateway(lambda r: httpx.Response(400, json={"message": "card declined"})).submit(order)
    assert "tok_secret" not in caplog.text
