"""
Restaurant profile of the signed-in staff member.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from smartmenu_employees.decorators import admin_required, login_required
from smartmenu_shared.db import get_session
from smartmenu_shared.jwt_middleware import get_employee_id, get_restaurant_id
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import UpdateRestaurantRequest
from smartmenu_shared.serializers import success_response
from smartmenu_shared.services.restaurant_cache import (
    get_restaurant_profile,
    update_restaurant_profile,
)
from smartmenu_shared.validation import ValidationError, parse_body

logger = get_logger(__name__)

restaurant_bp = Blueprint("restaurant", __name__)


@restaurant_bp.get("/restaurant")
@login_required
def get_restaurant():
    with get_session() as db:
        data = get_restaurant_profile(db, get_restaurant_id(), str(get_employee_id()))
    return jsonify(success_response(data)), HTTPStatus.OK


@restaurant_bp.patch("/restaurant")
@admin_required
def update_restaurant():
    """
    Body: {name?, currency?, whatsapp_number?}
    """
    body = parse_body(UpdateRestaurantRequest, request.get_json(silent=True))
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("Nothing to update")

    with get_session() as db:
        data = update_restaurant_profile(db, get_restaurant_id(), changes)

    logger.info(f"Restaurant {data['id']} updated by employee {get_employee_id()}")
    return jsonify(success_response(data)), HTTPStatus.OK
