import os
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-smartmenu-services-0123456789")
os.environ.setdefault("CUSTOMER_DATA_KEY", "test-customer-data-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_ROLE_KEY", None)

import pytest  # noqa: E402

from smartmenu_clients.app import create_app as create_clients_app  # noqa: E402
from smartmenu_employees.app import create_app as create_employees_app  # noqa: E402
from smartmenu_shared.constants import TableStatus  # noqa: E402
from smartmenu_shared.db import dispose_engine, get_session  # noqa: E402
from smartmenu_shared.jwt_service import create_access_token  # noqa: E402
from smartmenu_shared.models import Area, Product, Restaurant, Table  # noqa: E402
from smartmenu_shared.security_middleware import _rate_limiter  # noqa: E402
from smartmenu_shared.services.restaurant_cache import restaurant_cache  # noqa: E402

APP_URL = "https://menu.example.com"

RESTAURANT_ID = "R1"
OTHER_RESTAURANT_ID = "R2"
AREA_ID = "A1"
TABLE_ID = "T9"
SESSION_ID = "S1"


@pytest.fixture(autouse=True)
def _fresh_state():
    dispose_engine()
    restaurant_cache.clear()
    _rate_limiter.reset()
    yield
    dispose_engine()


@pytest.fixture
def clients_app():
    return create_clients_app(
        {
            "TESTING": True,
            "APP_URL": APP_URL,
            "WHATSAPP_BUSINESS_NUMBER": "+15550000000",
        }
    )


@pytest.fixture
def employees_app():
    return create_employees_app({"TESTING": True, "APP_URL": APP_URL})


@pytest.fixture
def client(clients_app):
    return clients_app.test_client()


@pytest.fixture
def staff_client(employees_app):
    return employees_app.test_client()


@pytest.fixture
def seed(clients_app):
    """
    Two tenants. R1 has table T9 (session S1), T10 and T11 and products P1
    (12.00), P2 (5.50) and P3 (unavailable). R2 has table T20 and product Q1.
    """
    with get_session() as session:
        session.add_all(
            [
                Restaurant(id=RESTAURANT_ID, name="Trattoria", slug="trattoria"),
                Restaurant(id=OTHER_RESTAURANT_ID, name="Cantina", slug="cantina"),
            ]
        )
        session.flush()
        session.add_all(
            [
                Area(id=AREA_ID, restaurant_id=RESTAURANT_ID, name="Patio"),
                Area(id="A2", restaurant_id=OTHER_RESTAURANT_ID, name="Bar"),
            ]
        )
        session.flush()
        session.add_all(
            [
                Table(
                    id=TABLE_ID,
                    restaurant_id=RESTAURANT_ID,
                    area_id=AREA_ID,
                    table_number="9",
                    session_id=SESSION_ID,
                ),
                Table(
                    id="T10",
                    restaurant_id=RESTAURANT_ID,
                    area_id=AREA_ID,
                    table_number="10",
                    session_id="S10",
                ),
                Table(
                    id="T11",
                    restaurant_id=RESTAURANT_ID,
                    area_id=AREA_ID,
                    table_number="11",
                    status=TableStatus.CLEANING.value,
                    session_id="S11",
                ),
                Table(
                    id="T20",
                    restaurant_id=OTHER_RESTAURANT_ID,
                    area_id="A2",
                    table_number="20",
                    session_id="S20",
                ),
                Product(id="P1", restaurant_id=RESTAURANT_ID, name="Lasagna", price=Decimal("12.00")),
                Product(id="P2", restaurant_id=RESTAURANT_ID, name="Tiramisu", price=Decimal("5.50")),
                Product(
                    id="P3",
                    restaurant_id=RESTAURANT_ID,
                    name="Truffle pasta",
                    price=Decimal("30.00"),
                    is_available=False,
                ),
                Product(id="Q1", restaurant_id=OTHER_RESTAURANT_ID, name="Taco", price=Decimal("4.00")),
            ]
        )
    return RESTAURANT_ID


def _auth_headers(role: str, restaurant_id: str = RESTAURANT_ID) -> dict:
    token = create_access_token("emp-1", restaurant_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _auth_headers("admin")


@pytest.fixture
def staff_headers():
    return _auth_headers("staff")


@pytest.fixture
def other_tenant_headers():
    return _auth_headers("admin", OTHER_RESTAURANT_ID)


def cart_body(customer_token: str, **fields) -> dict:
    body = {
        "restaurantId": RESTAURANT_ID,
        "sessionId": SESSION_ID,
        "customerToken": customer_token,
    }
    body.update(fields)
    return body
