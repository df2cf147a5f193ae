"""
QR scan entry point.
"""

from __future__ import annotations

from flask import Blueprint, current_app, redirect, request

from smartmenu_shared.db import get_session
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.services.table_session_service import resolve_table_redirect
from smartmenu_shared.validation import ValidationError

logger = get_logger(__name__)

web_bp = Blueprint("client_web", __name__)


@web_bp.get("/table-redirect")
def table_redirect():
    """
    Send a diner who scanned a table QR code to the menu.

    Query params:
    - table: Table ID (required)
    - area: Area ID (optional, passed through)
    """
    table_id = (request.args.get("table") or "").strip()
    area_id = (request.args.get("area") or "").strip() or None
    if not table_id:
        raise ValidationError("Table ID is required")

    base_url = current_app.config.get("APP_URL") or request.host_url
    with get_session() as db:
        target = resolve_table_redirect(db, table_id, area_id, base_url)

    return redirect(target, code=302)
