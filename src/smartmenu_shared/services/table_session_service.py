"""
Table session resolution for QR scans.

A table's `session_id` scopes its shared cart to one continuous seating. It is
assigned when the table is created (or its QR code generated) and replaced only
when staff close the seating. The QR entry point reads it; it never rotates it.
"""

from __future__ import annotations

import logging
import uuid
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.orm import Session

from smartmenu_shared.constants import TableStatus
from smartmenu_shared.models import Restaurant, Table
from smartmenu_shared.services.table_state_machine import (
    ACTOR_SYSTEM,
    is_orderable,
    parse_status,
    table_state_machine,
)
from smartmenu_shared.validation import NotFoundError

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return str(uuid.uuid4())


def menu_url(base_url: str, slug: str) -> str:
    return f"{base_url.rstrip('/')}/menu/{slug}"


def ensure_session_id(db: Session, table: Table) -> str:
    """
    Return the table's session id, assigning one if it is missing.

    A missing session id is a data-integrity anomaly: tables get one on
    creation. The repair is logged at ERROR level and counted on the table so it
    shows up in the admin listing.
    """
    if table.session_id:
        return table.session_id

    table.session_id = new_session_id()
    table.session_regenerations = (table.session_regenerations or 0) + 1
    db.flush()
    logger.error(
        "Table had no session id; generated a fallback",
        extra={
            "table_id": table.id,
            "restaurant_id": table.restaurant_id,
            "session_id": table.session_id,
            "session_regenerations": table.session_regenerations,
        },
    )
    return table.session_id


def resolve_table_redirect(
    db: Session, table_id: str, area_id: str | None, base_url: str
) -> str:
    """
    Build the menu URL a QR scan should land on.

    Blocked tables (cleaning, out of service) get the bare menu URL so the
    diner can browse but not order. Otherwise the URL carries the table, the
    current session and, when supplied, the area.
    """
    table = db.get(Table, table_id)
    if table is None or not table.is_active:
        raise NotFoundError("Table not found")

    restaurant = db.get(Restaurant, table.restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")

    target = menu_url(base_url, restaurant.slug)

    if not is_orderable(table.status):
        logger.info(
            "QR scan on blocked table",
            extra={"table_id": table.id, "status": table.status},
        )
        return target

    session_id = ensure_session_id(db, table)

    params = {"table": table.id, "session": session_id}
    if area_id:
        params["area"] = area_id
    return f"{target}?{urlencode(params)}"


def reset_table_session(db: Session, table: Table) -> str:
    """
    Start a new seating with a fresh session id.

    The table goes back to available when the state machine lets the system
    do so; a table staff put out of service keeps its status.
    """
    current = parse_status(table.status)
    if table_state_machine.can_transition(current, TableStatus.AVAILABLE, ACTOR_SYSTEM):
        table_state_machine.transition(table, TableStatus.AVAILABLE, actor=ACTOR_SYSTEM)
    table.session_id = new_session_id()
    db.flush()
    logger.info(
        "Table session reset",
        extra={"table_id": table.id, "restaurant_id": table.restaurant_id},
    )
    return table.session_id


def refresh_session_ids(db: Session, restaurant_id: str) -> int:
    """Give every active table of the restaurant a new session id. Returns the count."""
    tables = (
        db.execute(
            select(Table).where(Table.restaurant_id == restaurant_id, Table.is_active.is_(True))
        )
        .scalars()
        .all()
    )
    for table in tables:
        table.session_id = new_session_id()
    db.flush()
    logger.info(
        "Table session ids refreshed",
        extra={"restaurant_id": restaurant_id, "count": len(tables)},
    )
    return len(tables)
