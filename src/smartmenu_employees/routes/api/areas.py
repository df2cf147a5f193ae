"""
Areas API - zones that group tables.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from smartmenu_employees.decorators import admin_required, login_required
from smartmenu_shared.db import get_session
from smartmenu_shared.jwt_middleware import get_employee_id, get_restaurant_id
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import CreateAreaRequest
from smartmenu_shared.serializers import serialize_area, success_response
from smartmenu_shared.services import table_service
from smartmenu_shared.validation import parse_body

logger = get_logger(__name__)

areas_bp = Blueprint("areas", __name__)


@areas_bp.get("/areas")
@login_required
def get_areas():
    with get_session() as db:
        areas = table_service.list_areas(db, get_restaurant_id())
        data = [serialize_area(area) for area in areas]
    return jsonify(success_response({"areas": data})), HTTPStatus.OK


@areas_bp.post("/areas")
@admin_required
def create_area():
    """
    Body: {name, description?, capacity?, service_type?}
    """
    body = parse_body(CreateAreaRequest, request.get_json(silent=True))

    with get_session() as db:
        area = table_service.create_area(
            db,
            restaurant_id=get_restaurant_id(),
            name=body.name,
            description=body.description,
            capacity=body.capacity,
            service_type=body.service_type,
        )
        data = serialize_area(area)

    logger.info(f"Area {data['id']} created by employee {get_employee_id()}")
    return jsonify(success_response(data)), HTTPStatus.CREATED
