"""
Table orders API - the staff side of the shared cart.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from smartmenu_employees.decorators import login_required
from smartmenu_shared.db import get_session
from smartmenu_shared.jwt_middleware import get_employee_id, get_restaurant_id
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import TableOrderActionRequest
from smartmenu_shared.serializers import (
    serialize_cart_item,
    serialize_table,
    serialize_table_order,
    success_response,
)
from smartmenu_shared.services import order_service
from smartmenu_shared.services.cart_service import list_open_items, load_table
from smartmenu_shared.validation import parse_body, validate_pagination

logger = get_logger(__name__)

table_orders_bp = Blueprint("table_orders", __name__)


@table_orders_bp.get("/table-orders")
@login_required
def list_orders():
    """
    Query params: status (optional), page, limit
    """
    page, limit = validate_pagination(
        request.args.get("page", type=int), request.args.get("limit", type=int)
    )
    with get_session() as db:
        orders = order_service.list_orders(
            db, get_restaurant_id(), status=request.args.get("status"), page=page, limit=limit
        )
        data = [serialize_table_order(order, include_items=False) for order in orders]
    return jsonify(success_response({"orders": data, "page": page, "limit": limit})), HTTPStatus.OK


@table_orders_bp.get("/table-analytics")
@login_required
def get_table_analytics():
    """Orders count, closed count, revenue and average check per table."""
    with get_session() as db:
        metrics = order_service.table_analytics(db, get_restaurant_id())
    return jsonify(success_response({"metrics": metrics})), HTTPStatus.OK


@table_orders_bp.get("/table-orders/<table_id>")
@login_required
def get_table_orders(table_id: str):
    """Active orders of the table's current seating plus its open cart."""
    restaurant_id = get_restaurant_id()
    with get_session() as db:
        table = load_table(db, restaurant_id, table_id)
        orders = order_service.list_table_orders(db, restaurant_id, table_id)
        cart = list_open_items(db, table, table.session_id) if table.session_id else []
        data = {
            "table": serialize_table(table),
            "orders": [serialize_table_order(order) for order in orders],
            "open_items": [serialize_cart_item(item) for item in cart],
        }
    return jsonify(success_response(data)), HTTPStatus.OK


@table_orders_bp.patch("/table-orders/<table_id>")
@login_required
def update_table_orders(table_id: str):
    """
    Body: {action: process | remove_item | close, item_id?}

    close also resets the table for the next seating.
    """
    body = parse_body(TableOrderActionRequest, request.get_json(silent=True))
    restaurant_id = get_restaurant_id()

    with get_session() as db:
        if body.action == "process":
            orders = order_service.process_orders(db, restaurant_id, table_id)
            data = {"orders": [serialize_table_order(order) for order in orders]}
        elif body.action == "remove_item":
            item = order_service.remove_order_item(db, restaurant_id, table_id, body.item_id)
            data = {"removed_item_id": item.id}
        else:
            orders = order_service.close_orders(db, restaurant_id, table_id)
            table = load_table(db, restaurant_id, table_id)
            data = {
                "orders": [serialize_table_order(order) for order in orders],
                "table": serialize_table(table),
            }

    logger.info(
        f"Table order action {body.action} on table {table_id} by employee {get_employee_id()}"
    )
    return jsonify(success_response(data)), HTTPStatus.OK
