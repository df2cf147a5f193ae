"""
Order placement and table order administration.

Placing an order snapshots the table's unprocessed cart lines into one
`TableOrder`. Everything happens in the caller's transaction while the table
row is locked, so two diners pressing "order" at the same moment produce one
order, and the second request finds nothing left to place.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from smartmenu_shared.constants import (
    ACTIVE_TABLE_ORDER_STATUSES,
    OrderType,
    PaymentMethod,
    TableOrderStatus,
    TableStatus,
)
from smartmenu_shared.datetime_utils import utcnow
from smartmenu_shared.models import Area, CartItem, Customer, Table, TableOrder
from smartmenu_shared.services.cart_service import (
    ensure_table_open,
    list_open_items,
    load_table,
)
from smartmenu_shared.services.customer_service import mark_visits_ordered, record_order_stats
from smartmenu_shared.services.table_session_service import reset_table_session
from smartmenu_shared.services.table_state_machine import ACTOR_SYSTEM, table_state_machine
from smartmenu_shared.validation import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_ACTIVE_STATUS_VALUES = [status.value for status in ACTIVE_TABLE_ORDER_STATUSES]


def place_order(
    db: Session,
    restaurant_id: str,
    table_id: str,
    session_id: str,
    customer_token: str | None = None,
    order_type: str = OrderType.DINE_IN.value,
    payment_method: str | None = None,
) -> TableOrder:
    """
    Turn the table's open cart into an order.

    Steps, all inside one transaction with the table row locked: read the
    unprocessed lines, create the order with its totals, mark the lines
    processed, mark the table occupied, flag the contributors' latest visits
    and fold the amounts into their statistics.

    Raises:
        TableClosedError: the table is blocked or the session ended
        ConflictError: the cart was already placed and nothing new was added
        ValidationError: the cart was never filled
    """
    table = load_table(db, restaurant_id, table_id, lock=True)
    ensure_table_open(table, session_id)

    items = list_open_items(db, table, session_id)
    if not items:
        already_placed = db.execute(
            select(TableOrder.id)
            .where(
                TableOrder.restaurant_id == restaurant_id,
                TableOrder.table_id == table.id,
                TableOrder.session_id == session_id,
            )
            .limit(1)
        ).scalar_one_or_none()
        if already_placed:
            raise ConflictError(
                "Order already placed. Add new items before ordering again.",
                order_id=already_placed,
            )
        raise ValidationError("Cart is empty. Add items before placing an order.")

    order = TableOrder(
        restaurant_id=restaurant_id,
        table_id=table.id,
        area_id=table.area_id,
        session_id=session_id,
        order_status=TableOrderStatus.PENDING.value,
        order_type=OrderType(order_type).value,
        payment_method=PaymentMethod(payment_method).value if payment_method else None,
        customer_tokens=sorted({item.customer_token for item in items}),
        placed_at=utcnow(),
    )
    db.add(order)
    db.flush()

    per_customer: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for item in items:
        item.processed = True
        item.order_id = order.id
        item.version += 1
        if item.customer_id:
            per_customer[item.customer_id] += item.line_total

    order.items = items
    order.recompute_totals()

    table_state_machine.transition(table, TableStatus.OCCUPIED, actor=ACTOR_SYSTEM)

    customer_ids = sorted(per_customer)
    for customer in db.execute(select(Customer).where(Customer.id.in_(customer_ids))).scalars():
        record_order_stats(db, customer, per_customer[customer.id])
    mark_visits_ordered(db, restaurant_id, customer_ids, order, dict(per_customer))

    db.flush()
    logger.info(
        "Table order placed",
        extra={
            "restaurant_id": restaurant_id,
            "table_id": table.id,
            "order_id": order.id,
            "item_count": len(items),
            "total": str(order.total),
            "placed_by": customer_token,
        },
    )
    return order


def list_table_orders(
    db: Session, restaurant_id: str, table_id: str, active_only: bool = True
) -> list[TableOrder]:
    """Orders of the table's current seating (active ones by default)."""
    table = load_table(db, restaurant_id, table_id)
    stmt = select(TableOrder).where(
        TableOrder.restaurant_id == restaurant_id,
        TableOrder.table_id == table.id,
    )
    if active_only:
        stmt = stmt.where(
            TableOrder.session_id == table.session_id,
            TableOrder.order_status.in_(_ACTIVE_STATUS_VALUES),
        )
    return list(db.execute(stmt.order_by(TableOrder.placed_at)).scalars().all())


def list_orders(
    db: Session,
    restaurant_id: str,
    status: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> list[TableOrder]:
    stmt = select(TableOrder).where(TableOrder.restaurant_id == restaurant_id)
    if status:
        if status not in {s.value for s in TableOrderStatus}:
            raise ValidationError(f"Unknown order status: {status}")
        stmt = stmt.where(TableOrder.order_status == status)
    stmt = stmt.order_by(TableOrder.placed_at.desc()).offset((page - 1) * limit).limit(limit)
    return list(db.execute(stmt).scalars().all())


def _table_number_key(table_number: str) -> list:
    # "2" sorts before "10"; non-numeric chunks compare case-insensitively.
    return [
        (0, int(chunk), "") if chunk.isdigit() else (1, 0, chunk.lower())
        for chunk in re.split(r"(\d+)", table_number)
        if chunk
    ]


def table_analytics(db: Session, restaurant_id: str) -> list[dict]:
    """
    Per-table order metrics for the restaurant, across every seating.

    Tables without orders are included with zeroed metrics. Sorted by table
    number in natural order.
    """
    stmt = (
        select(
            Table.id,
            Table.table_number,
            Table.table_name,
            Area.name.label("area_name"),
            func.count(TableOrder.id).label("orders_count"),
            func.sum(
                case((TableOrder.order_status == TableOrderStatus.CLOSED.value, 1), else_=0)
            ).label("closed_count"),
            func.sum(TableOrder.total).label("total_revenue"),
        )
        .outerjoin(Area, Area.id == Table.area_id)
        .outerjoin(
            TableOrder,
            (TableOrder.table_id == Table.id) & (TableOrder.restaurant_id == restaurant_id),
        )
        .where(Table.restaurant_id == restaurant_id)
        .group_by(Table.id, Table.table_number, Table.table_name, Area.name)
    )

    metrics = []
    for row in db.execute(stmt).all():
        revenue = Decimal(str(row.total_revenue or 0))
        avg_check = revenue / row.orders_count if row.orders_count else Decimal("0")
        metrics.append(
            {
                "table_id": row.id,
                "table_number": row.table_number,
                "table_name": row.table_name,
                "area_name": row.area_name,
                "orders_count": row.orders_count,
                "closed_count": int(row.closed_count or 0),
                "total_revenue": float(revenue),
                "avg_check": float(avg_check.quantize(Decimal("0.01"))),
            }
        )
    metrics.sort(key=lambda entry: _table_number_key(entry["table_number"]))
    return metrics


def process_orders(db: Session, restaurant_id: str, table_id: str) -> list[TableOrder]:
    """Mark the table's pending orders as processed (sent to the kitchen)."""
    table = load_table(db, restaurant_id, table_id, lock=True)
    orders = [
        order
        for order in list_table_orders(db, restaurant_id, table.id)
        if order.order_status == TableOrderStatus.PENDING.value
    ]
    if not orders:
        raise NotFoundError("No pending order for this table")

    now = utcnow()
    for order in orders:
        order.order_status = TableOrderStatus.PROCESSED.value
        order.processed_at = now
    db.flush()
    logger.info(
        "Table orders processed",
        extra={"table_id": table.id, "order_ids": [order.id for order in orders]},
    )
    return orders


def remove_order_item(db: Session, restaurant_id: str, table_id: str, item_id: str) -> CartItem:
    """
    Staff removal of a line that has not reached the kitchen yet.

    Open cart lines and lines of pending orders can be removed; the order
    totals are recomputed.
    """
    table = load_table(db, restaurant_id, table_id, lock=True)
    item = db.get(CartItem, item_id)
    if item is None or item.table_id != table.id or item.restaurant_id != restaurant_id:
        raise NotFoundError("Order item not found")

    order = item.order
    if order is not None and order.order_status != TableOrderStatus.PENDING.value:
        raise ConflictError("Item belongs to an order that was already processed")

    db.delete(item)
    db.flush()
    if order is not None:
        db.refresh(order)
        order.recompute_totals()
        db.flush()
    logger.info(
        "Order item removed by staff",
        extra={"table_id": table.id, "item_id": item_id, "order_id": item.order_id},
    )
    return item


def close_orders(db: Session, restaurant_id: str, table_id: str) -> list[TableOrder]:
    """
    Close the table's active orders and start a new seating.

    The table session is reset even if there was nothing to close, so staff
    can always free a table.
    """
    table = load_table(db, restaurant_id, table_id, lock=True)
    orders = list_table_orders(db, restaurant_id, table.id)

    now = utcnow()
    for order in orders:
        order.order_status = TableOrderStatus.CLOSED.value
        order.closed_at = now

    reset_table_session(db, table)
    db.flush()
    logger.info(
        "Table orders closed",
        extra={"table_id": table.id, "order_ids": [order.id for order in orders]},
    )
    return orders
