"""
Customer service: anonymous diner identity, visit and event tracking.

A customer is identified per restaurant by the client token the browser keeps
in local storage. The token is trusted as-is; the optional device fingerprint
lets a diner who cleared storage keep their history.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smartmenu_shared.constants import (
    CustomerStatus,
    LoyaltyTier,
    QRCodeType,
)
from smartmenu_shared.datetime_utils import utcnow
from smartmenu_shared.models import (
    Area,
    CartItem,
    Customer,
    CustomerEvent,
    CustomerVisit,
    Restaurant,
    Table,
    TableOrder,
)
from smartmenu_shared.validation import NotFoundError, TenantMismatchError

logger = logging.getLogger(__name__)


def get_restaurant_or_404(db: Session, restaurant_id: str) -> Restaurant:
    restaurant = db.get(Restaurant, restaurant_id)
    if restaurant is None or not restaurant.is_active:
        raise NotFoundError("Restaurant not found")
    return restaurant


def check_seating_scope(
    db: Session, restaurant_id: str, table_id: str | None, area_id: str | None
) -> None:
    """Reject table/area ids that are unknown or belong to another restaurant."""
    if table_id:
        table = db.get(Table, table_id)
        if table is None:
            raise NotFoundError("Table not found")
        if table.restaurant_id != restaurant_id:
            raise TenantMismatchError("Table does not belong to this restaurant")
    if area_id:
        area = db.get(Area, area_id)
        if area is None:
            raise NotFoundError("Area not found")
        if area.restaurant_id != restaurant_id:
            raise TenantMismatchError("Area does not belong to this restaurant")


def get_customer_by_token(db: Session, restaurant_id: str, client_token: str) -> Customer | None:
    """Find the customer holding `client_token` in this restaurant."""
    return db.execute(
        select(Customer)
        .where(Customer.restaurant_id == restaurant_id, Customer.client_token == client_token)
        .order_by(Customer.last_seen_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def get_customer_by_fingerprint(
    db: Session, restaurant_id: str, fingerprint: str
) -> Customer | None:
    return db.execute(
        select(Customer)
        .where(
            Customer.restaurant_id == restaurant_id,
            Customer.client_fingerprint_id == fingerprint,
        )
        .order_by(Customer.last_seen_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def find_or_create_customer(
    db: Session,
    restaurant_id: str,
    client_token: str,
    client_fingerprint: str | None = None,
) -> Customer:
    """
    Resolve the customer for a (restaurant, token) pair.

    Lookup order: token, then fingerprint (rotating the stored token to the new
    one), then a new customer with zeroed statistics.
    """
    customer = get_customer_by_token(db, restaurant_id, client_token)
    if customer is not None:
        return customer

    if client_fingerprint:
        customer = get_customer_by_fingerprint(db, restaurant_id, client_fingerprint)
        if customer is not None:
            logger.info(
                "Customer token rotated via fingerprint",
                extra={"customer_id": customer.id, "restaurant_id": restaurant_id},
            )
            customer.client_token = client_token
            db.flush()
            return customer

    now = utcnow()
    customer = Customer(
        restaurant_id=restaurant_id,
        client_token=client_token,
        client_fingerprint_id=client_fingerprint,
        first_seen_at=now,
        last_seen_at=now,
        total_visits=0,
        total_orders=0,
        total_spent=Decimal("0"),
        average_order_value=Decimal("0"),
        lifetime_value=Decimal("0"),
        loyalty_tier=LoyaltyTier.BRONZE.value,
        loyalty_points=0,
        status=CustomerStatus.ACTIVE.value,
    )
    db.add(customer)
    db.flush()
    logger.info(
        "Customer created", extra={"customer_id": customer.id, "restaurant_id": restaurant_id}
    )
    return customer


def track_visit(
    db: Session,
    restaurant_id: str,
    client_token: str,
    client_fingerprint: str | None = None,
    table_id: str | None = None,
    area_id: str | None = None,
    qr_code_type: str = QRCodeType.GENERAL.value,
    campaign: str | None = None,
    device_info: dict[str, Any] | None = None,
    referrer: str | None = None,
) -> tuple[CustomerVisit, Customer]:
    """
    Record a visit and bump the customer's rolling counters.

    The visit row is committed before the counters are touched; a failure while
    updating the counters is logged and the visit stays recorded.
    """
    get_restaurant_or_404(db, restaurant_id)
    check_seating_scope(db, restaurant_id, table_id, area_id)

    customer = find_or_create_customer(db, restaurant_id, client_token, client_fingerprint)

    visit = CustomerVisit(
        customer_id=customer.id,
        restaurant_id=restaurant_id,
        table_id=table_id,
        area_id=area_id,
        visit_timestamp=utcnow(),
        device_info=device_info,
        referrer=referrer,
        qr_code_type=QRCodeType(qr_code_type).value,
        qr_code_campaign=campaign,
        menu_views=0,
        order_placed=False,
    )
    db.add(visit)
    db.commit()

    try:
        now = utcnow()
        db.execute(
            update(Customer)
            .where(Customer.id == customer.id)
            .values(
                total_visits=Customer.total_visits + 1,
                last_seen_at=now,
                updated_at=now,
            )
        )
        db.commit()
        db.refresh(customer)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            f"Failed to update visit counters for customer {customer.id}: {exc}",
            exc_info=True,
        )

    return visit, customer


def track_event(
    db: Session,
    restaurant_id: str,
    client_token: str,
    event_type: str,
    event_data: dict[str, Any] | None = None,
    table_id: str | None = None,
    area_id: str | None = None,
) -> CustomerEvent:
    """Store an analytics event; the customer is optional (unknown tokens are kept anonymous)."""
    get_restaurant_or_404(db, restaurant_id)
    check_seating_scope(db, restaurant_id, table_id, area_id)

    customer = get_customer_by_token(db, restaurant_id, client_token)
    event = CustomerEvent(
        customer_id=customer.id if customer else None,
        restaurant_id=restaurant_id,
        event_type=event_type,
        event_data=event_data,
        table_id=table_id,
        area_id=area_id,
        timestamp=utcnow(),
    )
    db.add(event)
    db.flush()
    return event


def mark_visits_ordered(
    db: Session,
    restaurant_id: str,
    customer_ids: list[str],
    order: TableOrder,
    order_values: dict[str, Decimal],
) -> None:
    """Flag the latest visit of each contributing customer with the placed order."""
    for customer_id in customer_ids:
        visit = db.execute(
            select(CustomerVisit)
            .where(
                CustomerVisit.restaurant_id == restaurant_id,
                CustomerVisit.customer_id == customer_id,
                CustomerVisit.order_placed.is_(False),
            )
            .order_by(CustomerVisit.visit_timestamp.desc())
            .limit(1)
        ).scalar_one_or_none()
        if visit is None:
            continue
        visit.order_placed = True
        visit.order_id = order.id
        visit.order_value = order_values.get(customer_id)


def record_order_stats(db: Session, customer: Customer, amount: Decimal) -> None:
    """Fold one order's contribution into the customer's spend statistics."""
    customer.total_orders = (customer.total_orders or 0) + 1
    customer.total_spent = Decimal(customer.total_spent or 0) + amount
    customer.lifetime_value = customer.total_spent
    customer.average_order_value = (customer.total_spent / customer.total_orders).quantize(
        Decimal("0.01")
    )
    customer.last_seen_at = utcnow()


def list_customers(
    db: Session, restaurant_id: str, page: int, limit: int
) -> tuple[list[Customer], int]:
    base = select(Customer).where(Customer.restaurant_id == restaurant_id)
    total = db.execute(
        select(func.count(Customer.id)).where(Customer.restaurant_id == restaurant_id)
    ).scalar_one()
    customers = (
        db.execute(
            base.order_by(Customer.last_seen_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        .scalars()
        .all()
    )
    return list(customers), total


def get_customer(db: Session, restaurant_id: str, customer_id: str) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None or customer.restaurant_id != restaurant_id:
        raise NotFoundError("Customer not found")
    return customer


def list_customer_visits(db: Session, restaurant_id: str, customer_id: str) -> list[CustomerVisit]:
    get_customer(db, restaurant_id, customer_id)
    return list(
        db.execute(
            select(CustomerVisit)
            .where(
                CustomerVisit.restaurant_id == restaurant_id,
                CustomerVisit.customer_id == customer_id,
            )
            .order_by(CustomerVisit.visit_timestamp.desc())
        )
        .scalars()
        .all()
    )


def list_customer_orders(db: Session, restaurant_id: str, customer_id: str) -> list[TableOrder]:
    """Orders the customer contributed line items to."""
    get_customer(db, restaurant_id, customer_id)
    order_ids = select(CartItem.order_id).where(
        CartItem.restaurant_id == restaurant_id,
        CartItem.customer_id == customer_id,
        CartItem.order_id.is_not(None),
    )
    return list(
        db.execute(
            select(TableOrder)
            .where(TableOrder.restaurant_id == restaurant_id, TableOrder.id.in_(order_ids))
            .order_by(TableOrder.placed_at.desc())
        )
        .scalars()
        .all()
    )
