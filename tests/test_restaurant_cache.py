from smartmenu_shared.db import get_session
from smartmenu_shared.models import Restaurant
from smartmenu_shared.services.restaurant_cache import RestaurantCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = RestaurantCache(ttl_seconds=10, clock=clock)
    cache.set("R1", "u1", {"name": "Trattoria"})

    clock.now = 9.9
    assert cache.get("R1", "u1") == {"name": "Trattoria"}
    clock.now = 10.0
    assert cache.get("R1", "u1") is None
    assert len(cache) == 0


def test_invalidate_drops_every_user_of_the_tenant() -> None:
    cache = RestaurantCache()
    cache.set("R1", "u1", {"name": "a"})
    cache.set("R1", "u2", {"name": "a"})
    cache.set("R2", "u1", {"name": "b"})

    assert cache.invalidate_restaurant("R1") == 2
    assert cache.get("R1", "u1") is None
    assert cache.get("R2", "u1") == {"name": "b"}


def test_returned_values_are_copies() -> None:
    cache = RestaurantCache()
    cache.set("R1", "u1", {"name": "a"})
    cache.get("R1", "u1")["name"] = "mutated"
    assert cache.get("R1", "u1") == {"name": "a"}


def test_size_is_bounded() -> None:
    clock = FakeClock()
    cache = RestaurantCache(max_entries=2, clock=clock)
    cache.set("R1", "u1", {})
    clock.now = 1
    cache.set("R1", "u2", {})
    clock.now = 2
    cache.set("R1", "u3", {})

    assert len(cache) == 2
    assert cache.get("R1", "u1") is None


def test_profile_update_invalidates_cached_profile(staff_client, seed, admin_headers) -> None:
    first = staff_client.get("/api/restaurant", headers=admin_headers)
    assert first.status_code == 200
    assert first.get_json()["data"]["name"] == "Trattoria"

    # Changed behind the API: the cached value is still served.
    with get_session() as db:
        db.get(Restaurant, "R1").currency = "USD"
    assert staff_client.get("/api/restaurant", headers=admin_headers).get_json()["data"]["currency"] == "EUR"

    resp = staff_client.patch("/api/restaurant", json={"name": "Trattoria Nuova"}, headers=admin_headers)
    assert resp.status_code == 200

    data = staff_client.get("/api/restaurant", headers=admin_headers).get_json()["data"]
    assert data["name"] == "Trattoria Nuova"
    assert data["currency"] == "USD"


def test_profile_update_rejects_empty_and_unknown_fields(staff_client, seed, admin_headers) -> None:
    assert staff_client.patch("/api/restaurant", json={}, headers=admin_headers).status_code == 400
    resp = staff_client.patch("/api/restaurant", json={"slug": "x"}, headers=admin_headers)
    assert resp.status_code == 400
    for field in ("name", "currency"):
        resp = staff_client.patch("/api/restaurant", json={field: None}, headers=admin_headers)
        assert resp.status_code == 400

    resp = staff_client.patch("/api/restaurant", json={"whatsapp_number": None}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["whatsapp_number"] is None
