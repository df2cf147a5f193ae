from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from smartmenu_shared.db import get_session
from smartmenu_shared.models import Customer, CustomerEvent, CustomerVisit
from smartmenu_shared.services import customer_service


def _customer_count(restaurant_id: str) -> int:
    with get_session() as db:
        return db.execute(
            select(func.count(Customer.id)).where(Customer.restaurant_id == restaurant_id)
        ).scalar_one()


def test_first_visit_creates_one_customer(client, seed) -> None:
    resp = client.post(
        "/api/crm/track-visit",
        json={"restaurantId": "R1", "clientToken": "abc123", "tableId": "T9", "areaId": "A1"},
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["visitId"]
    assert _customer_count("R1") == 1

    with get_session() as db:
        customer = db.get(Customer, body["customerId"])
        assert customer.total_visits == 1
        assert customer.client_token == "abc123"
        assert customer.total_orders == 0
        visit = db.get(CustomerVisit, body["visitId"])
        assert visit.table_id == "T9"
        assert visit.order_placed is False


def test_repeat_visit_reuses_customer(client, seed) -> None:
    payload = {"restaurantId": "R1", "clientToken": "abc123"}
    first = client.post("/api/crm/track-visit", json=payload).get_json()
    second = client.post("/api/crm/track-visit", json=payload).get_json()

    assert first["customerId"] == second["customerId"]
    assert _customer_count("R1") == 1
    with get_session() as db:
        assert db.get(Customer, first["customerId"]).total_visits == 2


def test_fingerprint_rotates_token_and_keeps_history(client, seed) -> None:
    first = client.post(
        "/api/crm/track-visit",
        json={"restaurantId": "R1", "clientToken": "old-token", "clientFingerprint": "fp-1"},
    ).get_json()
    second = client.post(
        "/api/crm/track-visit",
        json={"restaurantId": "R1", "clientToken": "new-token", "clientFingerprint": "fp-1"},
    ).get_json()

    assert first["customerId"] == second["customerId"]
    assert _customer_count("R1") == 1
    with get_session() as db:
        customer = db.get(Customer, second["customerId"])
        assert customer.client_token == "new-token"
        assert customer.total_visits == 2
        assert len(customer.visits) == 2


def test_same_token_in_two_restaurants_is_two_customers(client, seed) -> None:
    a = client.post("/api/crm/track-visit", json={"restaurantId": "R1", "clientToken": "abc123"})
    b = client.post("/api/crm/track-visit", json={"restaurantId": "R2", "clientToken": "abc123"})
    assert a.get_json()["customerId"] != b.get_json()["customerId"]


def test_track_visit_missing_token_is_rejected(client, seed) -> None:
    resp = client.post("/api/crm/track-visit", json={"restaurantId": "R1"})
    assert resp.status_code == 400
    assert "clientToken" in resp.get_json()["error"]


def test_track_visit_rejects_unknown_fields(client, seed) -> None:
    resp = client.post(
        "/api/crm/track-visit",
        json={"restaurantId": "R1", "clientToken": "abc123", "favouriteColour": "blue"},
    )
    assert resp.status_code == 400
    assert _customer_count("R1") == 0


def test_track_visit_unknown_restaurant(client, seed) -> None:
    resp = client.post("/api/crm/track-visit", json={"restaurantId": "nope", "clientToken": "abc"})
    assert resp.status_code == 404


def test_track_visit_table_of_other_tenant(client, seed) -> None:
    resp = client.post(
        "/api/crm/track-visit",
        json={"restaurantId": "R1", "clientToken": "abc123", "tableId": "T20"},
    )
    assert resp.status_code == 403
    assert _customer_count("R1") == 0


def test_counter_failure_keeps_the_visit(clients_app, seed, monkeypatch) -> None:
    def broken_update(*args, **kwargs):
        raise SQLAlchemyError("counter update failed")

    monkeypatch.setattr(customer_service, "update", broken_update)

    with get_session() as db:
        visit, customer = customer_service.track_visit(db, "R1", "abc123", table_id="T9")
        visit_id, customer_id = visit.id, customer.id

    with get_session() as db:
        assert db.get(CustomerVisit, visit_id) is not None
        assert db.get(Customer, customer_id).total_visits == 0


def test_track_event_for_known_and_anonymous_tokens(client, seed) -> None:
    client.post("/api/crm/track-visit", json={"restaurantId": "R1", "clientToken": "abc123"})

    known = client.post(
        "/api/crm/track-event",
        json={
            "restaurantId": "R1",
            "clientToken": "abc123",
            "eventType": "product_view",
            "eventData": {"productId": "P1"},
        },
    )
    anonymous = client.post(
        "/api/crm/track-event",
        json={"restaurantId": "R1", "clientToken": "stranger", "eventType": "menu_view"},
    )
    assert known.status_code == 200
    assert anonymous.status_code == 200

    with get_session() as db:
        event = db.get(CustomerEvent, known.get_json()["eventId"])
        assert event.customer_id is not None
        assert event.event_data == {"productId": "P1"}
        assert db.get(CustomerEvent, anonymous.get_json()["eventId"]).customer_id is None


def test_track_event_rejects_unknown_type(client, seed) -> None:
    resp = client.post(
        "/api/crm/track-event",
        json={"restaurantId": "R1", "clientToken": "abc123", "eventType": "dance"},
    )
    assert resp.status_code == 400
