"""
Shared table cart.

The live cart of a table is the set of unprocessed `CartItem` rows for its
current (table, session). Each row is one customer token's contribution for one
product. Mutations lock the table row so concurrent writers at the same table
are serialized; each row carries a `version` for compare-and-swap updates.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartmenu_shared.constants import MAX_CART_ITEM_QUANTITY
from smartmenu_shared.models import CartItem, IdempotencyRecord, Product, Table
from smartmenu_shared.serializers import safe_float, serialize_cart_item
from smartmenu_shared.services.customer_service import find_or_create_customer
from smartmenu_shared.services.table_state_machine import is_orderable
from smartmenu_shared.validation import (
    ConflictError,
    NotFoundError,
    TableClosedError,
    TenantMismatchError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ADD_ITEM_SCOPE = "cart_add"


def load_table(db: Session, restaurant_id: str, table_id: str, lock: bool = False) -> Table:
    """Fetch a table of this restaurant, optionally taking a row lock on it."""
    stmt = select(Table).where(Table.id == table_id)
    if lock:
        stmt = stmt.with_for_update()
    table = db.execute(stmt).scalar_one_or_none()
    if table is None or not table.is_active:
        raise NotFoundError("Table not found")
    if table.restaurant_id != restaurant_id:
        raise TenantMismatchError("Table does not belong to this restaurant")
    return table


def ensure_table_open(table: Table, session_id: str) -> None:
    """
    Raise TableClosedError unless the table takes orders for `session_id`.

    A session id other than the table's current one means the seating was
    closed after the diner scanned; they have to scan again.
    """
    if not is_orderable(table.status):
        raise TableClosedError(
            "This table is currently unavailable.",
            code="table_closed",
            tableClosed=True,
        )
    if not table.session_id or table.session_id != session_id:
        raise TableClosedError(
            "This table order has been closed. Scan the QR code on the table to start a new one.",
            code="session_ended",
            tableClosed=True,
        )


def _open_items_query(table: Table, session_id: str):
    return (
        select(CartItem)
        .where(
            CartItem.restaurant_id == table.restaurant_id,
            CartItem.table_id == table.id,
            CartItem.session_id == session_id,
            CartItem.processed.is_(False),
        )
        .order_by(CartItem.created_at, CartItem.id)
    )


def list_open_items(db: Session, table: Table, session_id: str) -> list[CartItem]:
    return list(db.execute(_open_items_query(table, session_id)).scalars().all())


def _find_line(
    db: Session, table: Table, session_id: str, product_id: str, customer_token: str
) -> CartItem | None:
    return db.execute(
        _open_items_query(table, session_id).where(
            CartItem.product_id == product_id,
            CartItem.customer_token == customer_token,
        )
    ).scalar_one_or_none()


def _sum_items(items: list[CartItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0.00"))


def _claim_idempotency_key(db: Session, restaurant_id: str, table_id: str, key: str) -> bool:
    """
    Record `key` for this table. Returns False when the key was already used.

    The claim is flushed before any cart write so a concurrent duplicate hits
    the unique constraint instead of incrementing twice.
    """
    scope = f"{ADD_ITEM_SCOPE}:{table_id}"
    existing = db.execute(
        select(IdempotencyRecord).where(
            IdempotencyRecord.restaurant_id == restaurant_id,
            IdempotencyRecord.scope == scope,
            IdempotencyRecord.key == key,
        )
    ).scalar_one_or_none()
    if existing is not None:
        return False

    db.add(IdempotencyRecord(restaurant_id=restaurant_id, scope=scope, key=key))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.warning(
            "Concurrent duplicate add-item request",
            extra={"table_id": table_id, "idempotency_key": key},
        )
        return False
    return True


def add_item(
    db: Session,
    restaurant_id: str,
    table_id: str,
    session_id: str,
    customer_token: str,
    product_id: str,
    quantity: int = 1,
    idempotency_key: str | None = None,
) -> tuple[CartItem | None, bool]:
    """
    Insert or increment the caller's line item for `product_id`.

    Returns (item, replayed). A replayed idempotency key leaves the cart
    untouched and returns (None, True).
    """
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    table = load_table(db, restaurant_id, table_id, lock=True)
    ensure_table_open(table, session_id)

    product = db.get(Product, product_id)
    if product is None or product.restaurant_id != restaurant_id:
        raise NotFoundError("Product not found")
    if not product.is_available:
        raise ValidationError("Product is not available")

    if idempotency_key and not _claim_idempotency_key(
        db, restaurant_id, table_id, idempotency_key
    ):
        logger.info(
            "Replayed add-item request ignored",
            extra={"table_id": table_id, "idempotency_key": idempotency_key},
        )
        return None, True

    customer = find_or_create_customer(db, restaurant_id, customer_token)

    item = _find_line(db, table, session_id, product_id, customer_token)
    if item is not None:
        new_quantity = item.quantity + quantity
        if new_quantity > MAX_CART_ITEM_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_CART_ITEM_QUANTITY}")
        item.quantity = new_quantity
        item.version += 1
    else:
        item = CartItem(
            restaurant_id=restaurant_id,
            table_id=table.id,
            session_id=session_id,
            product_id=product.id,
            product_name=product.name,
            unit_price=product.price,
            quantity=quantity,
            customer_token=customer_token,
            customer_id=customer.id,
            processed=False,
            version=1,
        )
        db.add(item)

    db.flush()
    logger.info(
        "Cart item added",
        extra={
            "restaurant_id": restaurant_id,
            "table_id": table.id,
            "product_id": product.id,
            "quantity": item.quantity,
        },
    )
    return item, False


def update_quantity(
    db: Session,
    restaurant_id: str,
    table_id: str,
    session_id: str,
    customer_token: str,
    product_id: str,
    quantity: int,
    expected_version: int | None = None,
) -> CartItem | None:
    """
    Set the caller's own quantity for `product_id`. Zero or less removes the line.

    Returns the updated item, or None when it was removed.

    Raises:
        ConflictError: `expected_version` no longer matches the stored row
    """
    table = load_table(db, restaurant_id, table_id, lock=True)
    ensure_table_open(table, session_id)

    item = _find_line(db, table, session_id, product_id, customer_token)
    if item is None:
        raise NotFoundError("Cart item not found")

    if expected_version is not None and item.version != expected_version:
        raise ConflictError(
            "Cart item was changed by another request",
            current_version=item.version,
        )

    if quantity <= 0:
        db.delete(item)
        db.flush()
        return None

    item.quantity = quantity
    item.version += 1
    db.flush()
    return item


def remove_item(
    db: Session,
    restaurant_id: str,
    table_id: str,
    session_id: str,
    customer_token: str,
    product_id: str,
) -> None:
    """Delete the caller's own line for `product_id`."""
    table = load_table(db, restaurant_id, table_id, lock=True)
    ensure_table_open(table, session_id)

    item = _find_line(db, table, session_id, product_id, customer_token)
    if item is None:
        raise NotFoundError("Cart item not found")

    db.delete(item)
    db.flush()


def get_customer_total(
    db: Session, restaurant_id: str, table_id: str, session_id: str, customer_token: str
) -> Decimal:
    table = load_table(db, restaurant_id, table_id)
    items = [
        item
        for item in list_open_items(db, table, session_id)
        if item.customer_token == customer_token
    ]
    return _sum_items(items)


def get_table_total(db: Session, restaurant_id: str, table_id: str, session_id: str) -> Decimal:
    table = load_table(db, restaurant_id, table_id)
    return _sum_items(list_open_items(db, table, session_id))


def get_cart(
    db: Session,
    restaurant_id: str,
    table_id: str,
    session_id: str,
    customer_token: str | None = None,
) -> dict[str, Any]:
    """
    Cart view for a diner at the table.

    Blocked tables and ended seatings answer with `tableClosed` instead of
    items, so the client can prompt for a new scan.
    """
    table = load_table(db, restaurant_id, table_id)
    try:
        ensure_table_open(table, session_id)
    except TableClosedError as exc:
        return {
            "tableId": table.id,
            "tableClosed": True,
            "reason": exc.extra.get("code"),
            "message": exc.message,
            "items": [],
        }

    items = list_open_items(db, table, session_id)
    mine = [item for item in items if customer_token and item.customer_token == customer_token]
    return {
        "tableId": table.id,
        "sessionId": session_id,
        "tableClosed": False,
        "items": [serialize_cart_item(item) for item in items],
        "tableTotal": safe_float(_sum_items(items)),
        "customerTotal": safe_float(_sum_items(mine)),
    }
