from decimal import Decimal

import pytest
from conftest import cart_body

from smartmenu_shared.constants import TableStatus
from smartmenu_shared.db import get_session
from smartmenu_shared.models import CartItem, Customer, Table
from smartmenu_shared.services import cart_service
from smartmenu_shared.validation import (
    ConflictError,
    NotFoundError,
    TableClosedError,
    TenantMismatchError,
    ValidationError,
)


def _add(db, token: str, product_id: str, quantity: int = 1, **kwargs):
    return cart_service.add_item(db, "R1", "T9", "S1", token, product_id, quantity, **kwargs)


def test_customer_and_table_totals_scenario(clients_app, seed) -> None:
    with get_session() as db:
        _add(db, "abc123", "P1", 2)
        _add(db, "abc123", "P2", 1)
        assert cart_service.get_customer_total(db, "R1", "T9", "S1", "abc123") == Decimal("29.50")

    with get_session() as db:
        _add(db, "xyz789", "P1", 1)

    with get_session() as db:
        assert cart_service.get_table_total(db, "R1", "T9", "S1") == Decimal("41.50")
        assert cart_service.get_customer_total(db, "R1", "T9", "S1", "abc123") == Decimal("29.50")
        assert cart_service.get_customer_total(db, "R1", "T9", "S1", "xyz789") == Decimal("12.00")


def test_scenario_over_http(client, seed) -> None:
    client.post("/api/table-orders/T9/items", json=cart_body("abc123", productId="P1", quantity=2))
    client.post("/api/table-orders/T9/items", json=cart_body("abc123", productId="P2"))
    resp = client.post(
        "/api/table-orders/T9/items", json=cart_body("xyz789", productId="P1", quantity=1)
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["tableTotal"] == 41.50
    assert body["customerTotal"] == 12.00

    view = client.get(
        "/api/table-orders/T9",
        query_string={"restaurantId": "R1", "sessionId": "S1", "customerToken": "abc123"},
    ).get_json()
    assert view["tableClosed"] is False
    assert view["customerTotal"] == 29.50
    assert view["tableTotal"] == 41.50
    assert len(view["items"]) == 3


def test_adding_same_product_increments_the_line(clients_app, seed) -> None:
    with get_session() as db:
        first, _ = _add(db, "abc123", "P1", 1)
        second, _ = _add(db, "abc123", "P1", 2)
        assert first.id == second.id
        assert second.quantity == 3
        assert second.version == 2
        assert len(cart_service.list_open_items(db, db.get(Table, "T9"), "S1")) == 1


def test_price_is_snapshotted_and_customer_attached(clients_app, seed) -> None:
    with get_session() as db:
        item, _ = _add(db, "abc123", "P2")
        assert item.unit_price == Decimal("5.50")
        assert item.product_name == "Tiramisu"
        customer = db.get(Customer, item.customer_id)
        assert customer.client_token == "abc123"


def test_quantity_cap(clients_app, seed) -> None:
    with get_session() as db:
        _add(db, "abc123", "P1", 98)
    with pytest.raises(ValidationError):
        with get_session() as db:
            _add(db, "abc123", "P1", 2)


def test_unavailable_and_foreign_products(clients_app, seed) -> None:
    with pytest.raises(ValidationError):
        with get_session() as db:
            _add(db, "abc123", "P3")
    with pytest.raises(NotFoundError):
        with get_session() as db:
            _add(db, "abc123", "Q1")


def test_blocked_table_rejects_cart_activity(client, seed) -> None:
    with get_session() as db:
        db.get(Table, "T9").status = TableStatus.CLEANING.value

    resp = client.post("/api/table-orders/T9/items", json=cart_body("abc123", productId="P1"))
    assert resp.status_code == 403
    body = resp.get_json()
    assert body["tableClosed"] is True
    assert body["code"] == "table_closed"

    view = client.get(
        "/api/table-orders/T9", query_string={"restaurantId": "R1", "sessionId": "S1"}
    ).get_json()
    assert view["tableClosed"] is True
    assert view["reason"] == "table_closed"
    assert view["items"] == []


def test_stale_session_is_a_closed_table(client, seed) -> None:
    resp = client.post(
        "/api/table-orders/T9/items",
        json=cart_body("abc123", productId="P1", sessionId="old-session"),
    )
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "session_ended"


def test_table_of_other_restaurant(clients_app, seed) -> None:
    with pytest.raises(TenantMismatchError):
        with get_session() as db:
            cart_service.add_item(db, "R1", "T20", "S20", "abc123", "P1")


def test_update_and_remove_only_touch_own_line(client, seed) -> None:
    client.post("/api/table-orders/T9/items", json=cart_body("abc123", productId="P1"))
    client.post("/api/table-orders/T9/items", json=cart_body("xyz789", productId="P1"))

    resp = client.patch("/api/table-orders/T9/items/P1", json=cart_body("abc123", quantity=4))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["item"]["quantity"] == 4
    assert body["customerTotal"] == 48.00
    assert body["tableTotal"] == 60.00

    resp = client.delete("/api/table-orders/T9/items/P1", json=cart_body("xyz789"))
    assert resp.status_code == 200
    body = resp.get_json()
    assert [item["customer_token"] for item in body["items"]] == ["abc123"]

    resp = client.delete("/api/table-orders/T9/items/P1", json=cart_body("xyz789"))
    assert resp.status_code == 404


def test_zero_quantity_removes_the_line(client, seed) -> None:
    client.post("/api/table-orders/T9/items", json=cart_body("abc123", productId="P2"))
    resp = client.patch("/api/table-orders/T9/items/P2", json=cart_body("abc123", quantity=0))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["item"] is None
    assert body["items"] == []
    assert body["tableTotal"] == 0.0


def test_stale_version_is_a_conflict(clients_app, seed) -> None:
    with get_session() as db:
        item, _ = _add(db, "abc123", "P1")
        version = item.version
    with get_session() as db:
        cart_service.update_quantity(db, "R1", "T9", "S1", "abc123", "P1", 3, expected_version=version)

    with pytest.raises(ConflictError) as exc_info:
        with get_session() as db:
            cart_service.update_quantity(
                db, "R1", "T9", "S1", "abc123", "P1", 5, expected_version=version
            )
    assert exc_info.value.extra["current_version"] == version + 1


def test_stale_version_over_http(client, seed) -> None:
    client.post("/api/table-orders/T9/items", json=cart_body("abc123", productId="P1"))
    client.patch("/api/table-orders/T9/items/P1", json=cart_body("abc123", quantity=2, expectedVersion=1))

    resp = client.patch(
        "/api/table-orders/T9/items/P1", json=cart_body("abc123", quantity=7, expectedVersion=1)
    )
    assert resp.status_code == 409
    assert resp.get_json()["current_version"] == 2


def test_idempotency_key_replay_does_not_double_count(client, seed) -> None:
    headers = {"Idempotency-Key": "retry-1"}
    first = client.post(
        "/api/table-orders/T9/items", json=cart_body("abc123", productId="P1"), headers=headers
    )
    replay = client.post(
        "/api/table-orders/T9/items", json=cart_body("abc123", productId="P1"), headers=headers
    )

    assert first.status_code == 201
    assert replay.status_code == 200
    body = replay.get_json()
    assert body["replayed"] is True
    assert body["item"] is None
    assert body["tableTotal"] == 12.00

    with get_session() as db:
        items = db.query(CartItem).filter_by(table_id="T9").all()
        assert [item.quantity for item in items] == [1]


def test_overlong_idempotency_key_is_rejected(client, seed) -> None:
    resp = client.post(
        "/api/table-orders/T9/items",
        json=cart_body("abc123", productId="P1"),
        headers={"Idempotency-Key": "k" * 129},
    )
    assert resp.status_code == 400

    with get_session() as db:
        assert db.query(CartItem).filter_by(table_id="T9").count() == 0

    ok = client.post(
        "/api/table-orders/T9/items",
        json=cart_body("abc123", productId="P1"),
        headers={"Idempotency-Key": "k" * 128},
    )
    assert ok.status_code == 201


def test_cart_requests_reject_unknown_fields(client, seed) -> None:
    resp = client.post(
        "/api/table-orders/T9/items",
        json=cart_body("abc123", productId="P1", discount="100%"),
    )
    assert resp.status_code == 400

    # The table already fixes the area.
    resp = client.post(
        "/api/table-orders/T9/items",
        json=cart_body("abc123", productId="P1", areaId="A1"),
    )
    assert resp.status_code == 400


def test_cart_requests_require_customer_token(client, seed) -> None:
    resp = client.post(
        "/api/table-orders/T9/items",
        json={"restaurantId": "R1", "sessionId": "S1", "productId": "P1"},
    )
    assert resp.status_code == 400
    assert "customerToken" in resp.get_json()["error"]


def test_cart_view_requires_session(client, seed) -> None:
    resp = client.get("/api/table-orders/T9", query_string={"restaurantId": "R1"})
    assert resp.status_code == 400


def test_closed_table_error_type(clients_app, seed) -> None:
    with pytest.raises(TableClosedError):
        with get_session() as db:
            cart_service.add_item(db, "R1", "T11", "S11", "abc123", "P1")
