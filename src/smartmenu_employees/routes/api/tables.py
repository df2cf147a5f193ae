"""
Tables API - seating, status changes, QR codes and session ids.
"""

from __future__ import annotations

from http import HTTPStatus
from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from smartmenu_employees.decorators import admin_required, login_required
from smartmenu_shared.db import get_session
from smartmenu_shared.jwt_middleware import get_employee_id, get_restaurant_id
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import CreateTableRequest, UpdateTableStatusRequest
from smartmenu_shared.serializers import serialize_table, success_response
from smartmenu_shared.services import qr_service, table_service
from smartmenu_shared.services.cart_service import load_table
from smartmenu_shared.services.table_session_service import refresh_session_ids
from smartmenu_shared.validation import parse_body

logger = get_logger(__name__)

tables_bp = Blueprint("tables", __name__)


@tables_bp.get("/tables")
@login_required
def get_tables():
    """
    List the restaurant's tables.

    Query params:
    - area_id: Filter by area (optional)
    - status: Filter by status (optional)
    """
    with get_session() as db:
        tables = table_service.list_tables(
            db,
            get_restaurant_id(),
            area_id=request.args.get("area_id"),
            status=request.args.get("status"),
        )
        data = [serialize_table(table) for table in tables]
    return jsonify(success_response({"tables": data})), HTTPStatus.OK


@tables_bp.post("/tables")
@admin_required
def create_table():
    """
    Body: {area_id, table_number, table_name?, capacity?, notes?}
    """
    body = parse_body(CreateTableRequest, request.get_json(silent=True))

    with get_session() as db:
        table = table_service.create_table(
            db,
            restaurant_id=get_restaurant_id(),
            area_id=body.area_id,
            table_number=body.table_number,
            table_name=body.table_name,
            capacity=body.capacity,
            notes=body.notes,
        )
        data = serialize_table(table)

    logger.info(f"Table {data['table_number']} created by employee {get_employee_id()}")
    return jsonify(success_response(data)), HTTPStatus.CREATED


@tables_bp.patch("/tables/<table_id>/status")
@login_required
def update_table_status(table_id: str):
    """
    Body: {status}. Only transitions allowed by the table state machine pass.
    """
    body = parse_body(UpdateTableStatusRequest, request.get_json(silent=True))

    with get_session() as db:
        table = table_service.update_table_status(
            db, get_restaurant_id(), table_id, body.status.value
        )
        data = serialize_table(table)

    return jsonify(success_response(data)), HTTPStatus.OK


@tables_bp.delete("/tables/<table_id>")
@admin_required
def delete_table(table_id: str):
    """Soft delete: the table is marked inactive."""
    with get_session() as db:
        table_service.deactivate_table(db, get_restaurant_id(), table_id)

    logger.info(f"Table {table_id} deactivated by employee {get_employee_id()}")
    return jsonify(success_response({"id": table_id})), HTTPStatus.OK


@tables_bp.get("/tables/<table_id>/qr")
@login_required
def get_table_qr(table_id: str):
    """Return the table's QR code as a PNG download."""
    base_url = current_app.config.get("APP_URL") or request.host_url
    bucket = current_app.config.get("STORAGE_BUCKET_QR", "qr-codes")

    with get_session() as db:
        table = load_table(db, get_restaurant_id(), table_id)
        png, _ = qr_service.generate_table_qr(db, table, base_url, bucket)
        table_number = table.table_number

    return send_file(
        BytesIO(png),
        mimetype="image/png",
        as_attachment=True,
        download_name=f"qr_table_{table_number}.png",
    )


@tables_bp.post("/tables/refresh-sessions")
@admin_required
def refresh_sessions():
    """Give every table a new session id (ends every open seating)."""
    with get_session() as db:
        count = refresh_session_ids(db, get_restaurant_id())

    logger.info(f"Session ids refreshed for {count} tables by employee {get_employee_id()}")
    return jsonify(success_response({"updated": count})), HTTPStatus.OK
