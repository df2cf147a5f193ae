"""
Serializers for consistent API responses.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from smartmenu_shared.datetime_utils import isoformat
from smartmenu_shared.models import (
    Area,
    CartItem,
    Customer,
    CustomerVisit,
    Restaurant,
    Table,
    TableOrder,
)


def safe_float(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def serialize_restaurant(restaurant: Restaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "slug": restaurant.slug,
        "currency": restaurant.currency,
        "whatsapp_number": restaurant.whatsapp_number,
        "is_active": restaurant.is_active,
        "updated_at": isoformat(restaurant.updated_at),
    }


def serialize_area(area: Area) -> dict[str, Any]:
    return {
        "id": area.id,
        "name": area.name,
        "description": area.description,
        "capacity": area.capacity,
        "service_type": area.service_type,
        "is_active": area.is_active,
    }


def serialize_table(table: Table) -> dict[str, Any]:
    return {
        "id": table.id,
        "area_id": table.area_id,
        "table_number": table.table_number,
        "table_name": table.table_name,
        "capacity": table.capacity,
        "status": table.status,
        "session_id": table.session_id,
        "session_regenerations": table.session_regenerations,
        "qr_code_url": table.qr_code_url,
        "notes": table.notes,
        "is_active": table.is_active,
        "created_at": isoformat(table.created_at),
    }


def serialize_cart_item(item: CartItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "name": item.product_name,
        "price": safe_float(item.unit_price),
        "quantity": item.quantity,
        "line_total": safe_float(item.line_total),
        "customer_token": item.customer_token,
        "processed": item.processed,
        "order_id": item.order_id,
        "version": item.version,
    }


def serialize_table_order(order: TableOrder, include_items: bool = True) -> dict[str, Any]:
    data = {
        "id": order.id,
        "restaurant_id": order.restaurant_id,
        "table_id": order.table_id,
        "area_id": order.area_id,
        "session_id": order.session_id,
        "order_status": order.order_status,
        "order_type": order.order_type,
        "payment_method": order.payment_method,
        "subtotal": safe_float(order.subtotal),
        "total": safe_float(order.total),
        "customer_tokens": order.customer_tokens or [],
        "placed_at": isoformat(order.placed_at),
        "processed_at": isoformat(order.processed_at),
        "closed_at": isoformat(order.closed_at),
    }
    if include_items:
        data["order_items"] = [serialize_cart_item(item) for item in order.items]
    return data


def serialize_customer(customer: Customer) -> dict[str, Any]:
    return {
        "id": customer.id,
        "name": customer.name,
        "first_seen_at": isoformat(customer.first_seen_at),
        "last_seen_at": isoformat(customer.last_seen_at),
        "total_visits": customer.total_visits,
        "total_orders": customer.total_orders,
        "total_spent": safe_float(customer.total_spent),
        "average_order_value": safe_float(customer.average_order_value),
        "lifetime_value": safe_float(customer.lifetime_value),
        "loyalty_tier": customer.loyalty_tier,
        "status": customer.status,
    }


def serialize_visit(visit: CustomerVisit) -> dict[str, Any]:
    return {
        "id": visit.id,
        "customer_id": visit.customer_id,
        "table_id": visit.table_id,
        "area_id": visit.area_id,
        "visit_timestamp": isoformat(visit.visit_timestamp),
        "referrer": visit.referrer,
        "qr_code_type": visit.qr_code_type,
        "qr_code_campaign": visit.qr_code_campaign,
        "order_placed": visit.order_placed,
        "order_id": visit.order_id,
    }


def success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Create a standardized success response."""
    response = {"status": "success", "data": data, "error": None}
    if message:
        response["message"] = message
    return response


def error_response(error: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error}
    if details:
        response["details"] = details
    return response
