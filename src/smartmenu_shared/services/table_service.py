"""
Table and area administration for staff.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartmenu_shared.constants import TableStatus
from smartmenu_shared.models import Area, Table
from smartmenu_shared.services.cart_service import load_table
from smartmenu_shared.services.table_session_service import new_session_id
from smartmenu_shared.services.table_state_machine import (
    ACTOR_STAFF,
    parse_status,
    table_state_machine,
)
from smartmenu_shared.validation import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def list_areas(db: Session, restaurant_id: str) -> list[Area]:
    return list(
        db.execute(
            select(Area)
            .where(Area.restaurant_id == restaurant_id, Area.is_active.is_(True))
            .order_by(Area.name)
        )
        .scalars()
        .all()
    )


def get_area(db: Session, restaurant_id: str, area_id: str) -> Area:
    area = db.get(Area, area_id)
    if area is None or area.restaurant_id != restaurant_id or not area.is_active:
        raise NotFoundError("Area not found")
    return area


def create_area(
    db: Session,
    restaurant_id: str,
    name: str,
    description: str | None = None,
    capacity: int | None = None,
    service_type: str = "full_service",
) -> Area:
    duplicate = db.execute(
        select(Area.id).where(Area.restaurant_id == restaurant_id, Area.name == name)
    ).scalar_one_or_none()
    if duplicate:
        raise ConflictError(f"An area named '{name}' already exists")

    area = Area(
        restaurant_id=restaurant_id,
        name=name,
        description=description,
        capacity=capacity,
        service_type=service_type,
    )
    db.add(area)
    db.flush()
    return area


def list_tables(
    db: Session, restaurant_id: str, area_id: str | None = None, status: str | None = None
) -> list[Table]:
    stmt = select(Table).where(Table.restaurant_id == restaurant_id, Table.is_active.is_(True))
    if area_id:
        stmt = stmt.where(Table.area_id == area_id)
    if status:
        stmt = stmt.where(Table.status == parse_status(status).value)
    return list(db.execute(stmt.order_by(Table.table_number)).scalars().all())


def create_table(
    db: Session,
    restaurant_id: str,
    area_id: str,
    table_number: str,
    table_name: str | None = None,
    capacity: int = 4,
    notes: str | None = None,
) -> Table:
    """Create a table with its first session id already assigned."""
    get_area(db, restaurant_id, area_id)
    duplicate = db.execute(
        select(Table.id).where(
            Table.restaurant_id == restaurant_id, Table.table_number == table_number
        )
    ).scalar_one_or_none()
    if duplicate:
        raise ConflictError(f"Table number '{table_number}' already exists")

    table = Table(
        restaurant_id=restaurant_id,
        area_id=area_id,
        table_number=table_number,
        table_name=table_name,
        capacity=capacity,
        notes=notes,
        status=TableStatus.AVAILABLE.value,
        session_id=new_session_id(),
    )
    db.add(table)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Table number '{table_number}' already exists") from exc
    logger.info(
        "Table created",
        extra={"restaurant_id": restaurant_id, "table_id": table.id, "area_id": area_id},
    )
    return table


def update_table_status(db: Session, restaurant_id: str, table_id: str, status: str) -> Table:
    """Staff status change, validated by the table state machine."""
    table = load_table(db, restaurant_id, table_id, lock=True)
    table_state_machine.transition(table, status, actor=ACTOR_STAFF)
    db.flush()
    return table


def deactivate_table(db: Session, restaurant_id: str, table_id: str) -> Table:
    table = load_table(db, restaurant_id, table_id)
    table.is_active = False
    db.flush()
    return table
