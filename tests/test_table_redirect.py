from urllib.parse import parse_qs, urlparse

import pytest

from smartmenu_shared.constants import TableStatus
from smartmenu_shared.db import get_session
from smartmenu_shared.models import Table


def _set_status(table_id: str, status: TableStatus) -> None:
    with get_session() as db:
        db.get(Table, table_id).status = status.value


def test_redirect_carries_table_session_and_area(client, seed) -> None:
    resp = client.get("/table-redirect?table=T9&area=A1")
    assert resp.status_code == 302

    location = urlparse(resp.headers["Location"])
    assert f"{location.scheme}://{location.netloc}" == "https://menu.example.com"
    assert location.path == "/menu/trattoria"
    assert parse_qs(location.query) == {"table": ["T9"], "session": ["S1"], "area": ["A1"]}


def test_repeated_scans_share_the_session(client, seed) -> None:
    first = client.get("/table-redirect?table=T9").headers["Location"]
    second = client.get("/table-redirect?table=T9").headers["Location"]
    assert first == second
    assert "area" not in parse_qs(urlparse(first).query)


@pytest.mark.parametrize("status", [TableStatus.CLEANING, TableStatus.OUT_OF_SERVICE])
def test_blocked_table_gets_bare_menu(client, seed, status) -> None:
    _set_status("T9", status)

    resp = client.get("/table-redirect?table=T9&area=A1")
    assert resp.status_code == 302
    location = urlparse(resp.headers["Location"])
    assert location.path == "/menu/trattoria"
    query = parse_qs(location.query)
    assert "table" not in query
    assert "session" not in query


def test_missing_table_param(client, seed) -> None:
    resp = client.get("/table-redirect")
    assert resp.status_code == 400


def test_unknown_or_inactive_table(client, seed) -> None:
    assert client.get("/table-redirect?table=missing").status_code == 404

    with get_session() as db:
        db.get(Table, "T10").is_active = False
    assert client.get("/table-redirect?table=T10").status_code == 404


def test_missing_session_is_repaired_and_counted(client, seed, caplog) -> None:
    with get_session() as db:
        db.get(Table, "T10").session_id = None

    with caplog.at_level("ERROR"):
        resp = client.get("/table-redirect?table=T10")
    assert resp.status_code == 302

    session = parse_qs(urlparse(resp.headers["Location"]).query)["session"][0]
    with get_session() as db:
        table = db.get(Table, "T10")
        assert table.session_id == session
        assert table.session_regenerations == 1
    assert any("no session id" in record.getMessage() for record in caplog.records)

    # A second scan reads the stored id and does not count again.
    again = client.get("/table-redirect?table=T10")
    assert parse_qs(urlparse(again.headers["Location"]).query)["session"][0] == session
    with get_session() as db:
        assert db.get(Table, "T10").session_regenerations == 1
