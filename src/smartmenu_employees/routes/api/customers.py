"""
Customers API - CRM read views.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from smartmenu_employees.decorators import login_required
from smartmenu_shared.db import get_session
from smartmenu_shared.jwt_middleware import get_restaurant_id
from smartmenu_shared.serializers import (
    serialize_customer,
    serialize_table_order,
    serialize_visit,
    success_response,
)
from smartmenu_shared.services import customer_service
from smartmenu_shared.validation import validate_pagination

customers_bp = Blueprint("customers", __name__)


@customers_bp.get("/customers")
@login_required
def list_customers():
    page, limit = validate_pagination(
        request.args.get("page", type=int), request.args.get("limit", type=int)
    )
    with get_session() as db:
        customers, total = customer_service.list_customers(db, get_restaurant_id(), page, limit)
        data = {
            "customers": [serialize_customer(customer) for customer in customers],
            "total": total,
            "page": page,
            "limit": limit,
        }
    return jsonify(success_response(data)), HTTPStatus.OK


@customers_bp.get("/customers/<customer_id>")
@login_required
def get_customer(customer_id: str):
    with get_session() as db:
        customer = customer_service.get_customer(db, get_restaurant_id(), customer_id)
        data = serialize_customer(customer)
    return jsonify(success_response(data)), HTTPStatus.OK


@customers_bp.get("/customers/<customer_id>/visits")
@login_required
def get_customer_visits(customer_id: str):
    with get_session() as db:
        visits = customer_service.list_customer_visits(db, get_restaurant_id(), customer_id)
        data = [serialize_visit(visit) for visit in visits]
    return jsonify(success_response({"visits": data})), HTTPStatus.OK


@customers_bp.get("/customers/<customer_id>/orders")
@login_required
def get_customer_orders(customer_id: str):
    with get_session() as db:
        orders = customer_service.list_customer_orders(db, get_restaurant_id(), customer_id)
        data = [serialize_table_order(order, include_items=False) for order in orders]
    return jsonify(success_response({"orders": data})), HTTPStatus.OK
