"""
Shared table cart and order placement for diners.

Every call names the restaurant, the table and the session id the diner got
from the QR redirect, plus their client token for attribution.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from smartmenu_shared.constants import MAX_IDEMPOTENCY_KEY_LENGTH
from smartmenu_shared.db import get_session
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import (
    AddCartItemRequest,
    CartViewQuery,
    PlaceOrderRequest,
    RemoveCartItemRequest,
    UpdateCartItemRequest,
)
from smartmenu_shared.security_middleware import rate_limit
from smartmenu_shared.serializers import serialize_cart_item, serialize_table_order
from smartmenu_shared.services import cart_service, order_service
from smartmenu_shared.validation import ValidationError, parse_body

logger = get_logger(__name__)

table_orders_bp = Blueprint("client_table_orders", __name__)


@table_orders_bp.get("/table-orders/<table_id>")
def get_table_cart(table_id: str):
    """
    Current cart of the table.

    Query params: restaurantId, sessionId, customerToken (optional)
    """
    query = parse_body(CartViewQuery, request.args.to_dict())

    with get_session() as db:
        cart = cart_service.get_cart(
            db, query.restaurant_id, table_id, query.session_id, query.customer_token
        )

    return jsonify({"success": True, **cart}), HTTPStatus.OK


@table_orders_bp.post("/table-orders/<table_id>/items")
@rate_limit(max_requests=60, window_seconds=60, key_prefix="cart")
def add_cart_item(table_id: str):
    """
    Add a product to the caller's share of the cart.

    Body: {restaurantId, sessionId, customerToken, productId, quantity?}
    Header: Idempotency-Key (optional); a repeated key does not add again.
    """
    body = parse_body(AddCartItemRequest, request.get_json(silent=True))
    idempotency_key = (request.headers.get("Idempotency-Key") or "").strip() or None
    if idempotency_key and len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(
            f"Idempotency-Key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters"
        )

    with get_session() as db:
        item, replayed = cart_service.add_item(
            db,
            restaurant_id=body.restaurant_id,
            table_id=table_id,
            session_id=body.session_id,
            customer_token=body.customer_token,
            product_id=body.product_id,
            quantity=body.quantity,
            idempotency_key=idempotency_key,
        )
        cart = cart_service.get_cart(
            db, body.restaurant_id, table_id, body.session_id, body.customer_token
        )
        response = {
            "success": True,
            "replayed": replayed,
            "item": serialize_cart_item(item) if item else None,
            **cart,
        }

    status = HTTPStatus.OK if replayed else HTTPStatus.CREATED
    return jsonify(response), status


@table_orders_bp.patch("/table-orders/<table_id>/items/<product_id>")
@rate_limit(max_requests=60, window_seconds=60, key_prefix="cart")
def update_cart_item(table_id: str, product_id: str):
    """
    Set the caller's quantity for a product. Zero removes the line.

    Body: {restaurantId, sessionId, customerToken, quantity, expectedVersion?}
    """
    body = parse_body(UpdateCartItemRequest, request.get_json(silent=True))

    with get_session() as db:
        item = cart_service.update_quantity(
            db,
            restaurant_id=body.restaurant_id,
            table_id=table_id,
            session_id=body.session_id,
            customer_token=body.customer_token,
            product_id=product_id,
            quantity=body.quantity,
            expected_version=body.expected_version,
        )
        cart = cart_service.get_cart(
            db, body.restaurant_id, table_id, body.session_id, body.customer_token
        )
        response = {
            "success": True,
            "item": serialize_cart_item(item) if item else None,
            **cart,
        }

    return jsonify(response), HTTPStatus.OK


@table_orders_bp.delete("/table-orders/<table_id>/items/<product_id>")
@rate_limit(max_requests=60, window_seconds=60, key_prefix="cart")
def remove_cart_item(table_id: str, product_id: str):
    """
    Remove the caller's line for a product.

    Body: {restaurantId, sessionId, customerToken}
    """
    body = parse_body(RemoveCartItemRequest, request.get_json(silent=True))

    with get_session() as db:
        cart_service.remove_item(
            db,
            restaurant_id=body.restaurant_id,
            table_id=table_id,
            session_id=body.session_id,
            customer_token=body.customer_token,
            product_id=product_id,
        )
        cart = cart_service.get_cart(
            db, body.restaurant_id, table_id, body.session_id, body.customer_token
        )

    return jsonify({"success": True, **cart}), HTTPStatus.OK


@table_orders_bp.post("/table-orders/<table_id>/place")
@rate_limit(max_requests=10, window_seconds=60, key_prefix="place")
def place_table_order(table_id: str):
    """
    Send the table's cart to the kitchen.

    Body: {restaurantId, sessionId, customerToken?, orderType?, paymentMethod?}
    """
    body = parse_body(PlaceOrderRequest, request.get_json(silent=True))

    with get_session() as db:
        order = order_service.place_order(
            db,
            restaurant_id=body.restaurant_id,
            table_id=table_id,
            session_id=body.session_id,
            customer_token=body.customer_token,
            order_type=body.order_type.value,
            payment_method=body.payment_method.value if body.payment_method else None,
        )
        response = {"success": True, "order": serialize_table_order(order)}

    return jsonify(response), HTTPStatus.CREATED
