"""
SQLAlchemy ORM models shared by the smartmenu services.

Every row belongs to exactly one restaurant (tenant) through `restaurant_id`.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .constants import (
    MAX_IDEMPOTENCY_KEY_LENGTH,
    CustomerStatus,
    LoyaltyTier,
    OrderType,
    QRCodeType,
    TableOrderStatus,
    TableStatus,
    WhatsAppTokenStatus,
)
from .datetime_utils import utcnow
from .security import decrypt_string


class JSONBType(TypeDecorator):
    """
    Custom type that provides JSONB support for PostgreSQL
    and falls back to TEXT with JSON serialization for SQLite.

    This allows tests to run with SQLite while production uses PostgreSQL JSONB.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        """Use JSONB for PostgreSQL, Text for SQLite."""
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        """Convert Python dict/list to JSON string for storage."""
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        """Convert JSON string back to Python dict/list."""
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def python_type(self):
        return object


JSONB_TYPE = JSONBType()


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Restaurant(Base):
    __tablename__ = "restaurants"
    __table_args__ = (
        Index("ix_restaurant_slug", "slug", unique=True),
        Index("ix_restaurant_owner", "owner_user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    owner_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="EUR")
    whatsapp_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    areas: Mapped[list[Area]] = relationship("Area", back_populates="restaurant")
    tables: Mapped[list[Table]] = relationship("Table", back_populates="restaurant")


class Product(Base):
    """Menu product. Cart line items snapshot its price when they are created."""

    __tablename__ = "products"
    __table_args__ = (Index("ix_product_restaurant", "restaurant_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Area(Base):
    """
    Named zone grouping tables (e.g. Patio, Bar).
    """

    __tablename__ = "areas"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "name", name="uq_area_restaurant_name"),
        Index("ix_area_restaurant", "restaurant_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    service_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default="full_service"
    )  # full_service, bar_service, counter
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    restaurant: Mapped[Restaurant] = relationship("Restaurant", back_populates="areas")
    tables: Mapped[list[Table]] = relationship("Table", back_populates="area")


class Table(Base):
    """
    Physical seating unit. `session_id` scopes the shared cart to one seating.
    """

    __tablename__ = "tables"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "table_number", name="uq_table_restaurant_number"),
        Index("ix_table_restaurant_status", "restaurant_id", "status"),
        Index("ix_table_area", "area_id"),
        Index("ix_table_session_id", "session_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    area_id: Mapped[str] = mapped_column(ForeignKey("areas.id"), nullable=False)
    table_number: Mapped[str] = mapped_column(String(50), nullable=False)
    table_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TableStatus.AVAILABLE.value
    )
    session_id: Mapped[str | None] = mapped_column(String(36), nullable=True, default=_uuid)
    session_regenerations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qr_code_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    qr_code_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    restaurant: Mapped[Restaurant] = relationship("Restaurant", back_populates="tables")
    area: Mapped[Area] = relationship("Area", back_populates="tables")


class Customer(Base):
    """
    Identity anchor for an anonymous or identified diner, per restaurant.
    Customers are never hard-deleted.
    """

    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customer_restaurant_token", "restaurant_id", "client_token"),
        Index("ix_customer_restaurant_fingerprint", "restaurant_id", "client_fingerprint_id"),
        Index("ix_customer_last_seen", "restaurant_id", "last_seen_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    client_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    client_fingerprint_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    total_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    average_order_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=0
    )
    lifetime_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    loyalty_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LoyaltyTier.BRONZE.value
    )
    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CustomerStatus.ACTIVE.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    visits: Mapped[list[CustomerVisit]] = relationship(
        "CustomerVisit", back_populates="customer", order_by="CustomerVisit.visit_timestamp"
    )


class CustomerVisit(Base):
    """One row per scan/interaction. Only `order_placed`/`order_id` change later."""

    __tablename__ = "customer_visits"
    __table_args__ = (
        Index("ix_visit_customer", "customer_id", "visit_timestamp"),
        Index("ix_visit_restaurant", "restaurant_id", "visit_timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    customer_id: Mapped[str] = mapped_column(ForeignKey("customers.id"), nullable=False)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    table_id: Mapped[str | None] = mapped_column(ForeignKey("tables.id"), nullable=True)
    area_id: Mapped[str | None] = mapped_column(ForeignKey("areas.id"), nullable=True)
    visit_timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    device_info: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE, nullable=True)
    referrer: Mapped[str | None] = mapped_column(Text, nullable=True)
    qr_code_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QRCodeType.GENERAL.value
    )
    qr_code_campaign: Mapped[str | None] = mapped_column(String(120), nullable=True)
    menu_views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_placed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("table_orders.id"), nullable=True)
    order_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    customer: Mapped[Customer] = relationship("Customer", back_populates="visits")


class CustomerEvent(Base):
    __tablename__ = "customer_events"
    __table_args__ = (Index("ix_event_restaurant_type", "restaurant_id", "event_type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id"), nullable=True)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    event_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE, nullable=True)
    table_id: Mapped[str | None] = mapped_column(ForeignKey("tables.id"), nullable=True)
    area_id: Mapped[str | None] = mapped_column(ForeignKey("areas.id"), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class TableOrder(Base):
    """
    Snapshot of the line items of one table session that were sent to the kitchen.
    """

    __tablename__ = "table_orders"
    __table_args__ = (
        Index("ix_table_order_restaurant_status", "restaurant_id", "order_status"),
        Index("ix_table_order_table", "table_id", "session_id"),
        Index("ix_table_order_placed_at", "restaurant_id", "placed_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    table_id: Mapped[str] = mapped_column(ForeignKey("tables.id"), nullable=False)
    area_id: Mapped[str | None] = mapped_column(ForeignKey("areas.id"), nullable=True)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False)
    order_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TableOrderStatus.PENDING.value
    )
    order_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderType.DINE_IN.value
    )
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    customer_tokens: Mapped[list[str] | None] = mapped_column(JSONB_TYPE, nullable=True)
    placed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    table: Mapped[Table] = relationship("Table")
    items: Mapped[list[CartItem]] = relationship(
        "CartItem", back_populates="order", order_by="CartItem.created_at"
    )

    def recompute_totals(self) -> None:
        subtotal = sum((item.line_total for item in self.items), Decimal("0"))
        self.subtotal = subtotal
        self.total = subtotal


class CartItem(Base):
    """
    One product contribution to a table's shared cart, tagged by client token.

    Unprocessed rows for (table, session) are the live cart. Processed rows stay
    as the history of a placed order.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        Index("ix_cart_item_table_session", "table_id", "session_id", "processed"),
        Index("ix_cart_item_order", "order_id"),
        Index(
            "uq_cart_item_open_line",
            "table_id",
            "session_id",
            "product_id",
            "customer_token",
            unique=True,
            postgresql_where=text("processed = false"),
            sqlite_where=text("processed = 0"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    table_id: Mapped[str] = mapped_column(ForeignKey("tables.id"), nullable=False)
    session_id: Mapped[str] = mapped_column(String(36), nullable=False)
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    customer_token: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id"), nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order_id: Mapped[str | None] = mapped_column(ForeignKey("table_orders.id"), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    order: Mapped[TableOrder | None] = relationship("TableOrder", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity


class WhatsAppOrderToken(Base):
    """
    Short-lived code that ties a WhatsApp message back to a pending order payload.
    Moves from pending to received exactly once.
    """

    __tablename__ = "whatsapp_order_tokens"
    __table_args__ = (
        Index("ix_whatsapp_token_token", "token", unique=True),
        Index("ix_whatsapp_token_restaurant_status", "restaurant_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    token: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    customer_id: Mapped[str | None] = mapped_column(ForeignKey("customers.id"), nullable=True)
    table_id: Mapped[str | None] = mapped_column(ForeignKey("tables.id"), nullable=True)
    area_id: Mapped[str | None] = mapped_column(ForeignKey("areas.id"), nullable=True)
    order_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderType.DINE_IN.value
    )
    campaign: Mapped[str | None] = mapped_column(String(120), nullable=True)
    order_data: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE, nullable=True)
    phone_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WhatsAppTokenStatus.PENDING.value
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    @hybrid_property
    def phone_number(self) -> str | None:
        return decrypt_string(self.phone_encrypted)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class IdempotencyRecord(Base):
    """
    Claimed Idempotency-Key. The unique constraint makes the first claim win;
    a replay finds the row and returns the current cart instead.
    """

    __tablename__ = "idempotency_records"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "scope", "key", name="uq_idempotency_scope_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    restaurant_id: Mapped[str] = mapped_column(ForeignKey("restaurants.id"), nullable=False)
    scope: Mapped[str] = mapped_column(String(64), nullable=False)
    key: Mapped[str] = mapped_column(String(MAX_IDEMPOTENCY_KEY_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
