from datetime import timedelta

import pytest

from smartmenu_shared.constants import WHATSAPP_TOKEN_ALPHABET, WHATSAPP_TOKEN_LENGTH
from smartmenu_shared.datetime_utils import utcnow
from smartmenu_shared.db import get_session
from smartmenu_shared.models import Restaurant, WhatsAppOrderToken
from smartmenu_shared.services import whatsapp_service
from smartmenu_shared.validation import GoneError

ORDER_DATA = {"items": [{"productId": "P1", "quantity": 2}], "total": 24.0}


def _create_token(client, **fields):
    body = {"restaurantId": "R1", "clientToken": "abc123", "orderData": ORDER_DATA}
    body.update(fields)
    return client.post("/api/crm/whatsapp/create-token", json=body)


def _stored(token: str) -> WhatsAppOrderToken:
    with get_session() as db:
        return db.query(WhatsAppOrderToken).filter_by(token=token).one()


def test_create_token(client, seed) -> None:
    resp = _create_token(client, tableId="T9", areaId="A1", campaign="summer")
    assert resp.status_code == 200
    body = resp.get_json()

    token = body["token"]
    assert len(token) == WHATSAPP_TOKEN_LENGTH
    assert set(token) <= set(WHATSAPP_TOKEN_ALPHABET)
    assert body["whatsappNumber"] == "+15550000000"
    assert body["expiresAt"]

    record = _stored(token)
    assert record.status == "pending"
    assert record.order_data == ORDER_DATA
    assert record.table_id == "T9"
    assert record.campaign == "summer"
    remaining = record.expires_at - utcnow()
    assert timedelta(minutes=59) < remaining <= timedelta(minutes=60)


def test_restaurant_number_wins_over_platform_number(client, seed) -> None:
    with get_session() as db:
        db.get(Restaurant, "R1").whatsapp_number = "+34600000000"
    assert _create_token(client).get_json()["whatsappNumber"] == "+34600000000"


def test_create_token_requires_order_data(client, seed) -> None:
    resp = client.post(
        "/api/crm/whatsapp/create-token", json={"restaurantId": "R1", "clientToken": "abc123"}
    )
    assert resp.status_code == 400


def test_webhook_round_trip(client, seed) -> None:
    token = _create_token(client).get_json()["token"]

    resp = client.post("/api/crm/whatsapp/webhook", json={"token": token, "phone": "+34611222333"})
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True}

    record = _stored(token)
    assert record.status == "received"
    assert record.phone_number == "+34611222333"
    assert record.phone_encrypted != "+34611222333"
    assert record.processed_at is not None

    again = client.post("/api/crm/whatsapp/webhook", json={"token": token, "phone": "+34699999999"})
    assert again.status_code == 409
    assert _stored(token).phone_number == "+34611222333"


def test_webhook_provider_message_shape(client, seed) -> None:
    token = _create_token(client).get_json()["token"]
    payload = {
        "messages": [
            {"from": "+34611222333", "text": {"body": f"Hi! Order: {token.lower()}"}},
        ]
    }
    resp = client.post("/api/crm/whatsapp/webhook", json=payload)
    assert resp.status_code == 200
    assert _stored(token).status == "received"


def test_expired_token_is_rejected(clients_app, seed) -> None:
    with get_session() as db:
        record, _ = whatsapp_service.create_order_token(
            db, "R1", "abc123", ORDER_DATA, "+15550000000", ttl_minutes=60
        )
        token = record.token

    later = utcnow() + timedelta(minutes=61)
    with pytest.raises(GoneError):
        with get_session() as db:
            whatsapp_service.receive_webhook(db, {"token": token, "phone": "+3461"}, now=later)
    assert _stored(token).status == "pending"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"token": "ABCDEFGH"},
        {"phone": "+34611222333"},
        {"messages": [{"text": {"body": "hello"}}]},
        ["ABCDEFGH", "+34611222333"],
        "Order: ABCDEFGH",
    ],
)
def test_webhook_missing_token_or_phone(client, seed, payload) -> None:
    assert client.post("/api/crm/whatsapp/webhook", json=payload).status_code == 400


def test_webhook_unknown_token(client, seed) -> None:
    resp = client.post("/api/crm/whatsapp/webhook", json={"token": "ZZZZZZZZ", "phone": "+3461"})
    assert resp.status_code == 404


def test_parse_webhook_payload_prefers_flat_fields() -> None:
    token, phone = whatsapp_service.parse_webhook_payload(
        {"token": " abcd2345 ", "phone": "+1", "messages": [{"from": "+2"}]}
    )
    assert token == "ABCD2345"
    assert phone == "+1"
