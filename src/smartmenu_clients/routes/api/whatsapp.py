"""
WhatsApp order handoff endpoints.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from smartmenu_shared.datetime_utils import isoformat
from smartmenu_shared.db import get_session
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import CreateWhatsAppTokenRequest
from smartmenu_shared.security_middleware import rate_limit
from smartmenu_shared.services.whatsapp_service import create_order_token, receive_webhook
from smartmenu_shared.validation import parse_body

logger = get_logger(__name__)

whatsapp_bp = Blueprint("client_whatsapp", __name__)


@whatsapp_bp.post("/crm/whatsapp/create-token")
@rate_limit(max_requests=20, window_seconds=60, key_prefix="whatsapp-token")
def create_token():
    """
    Create a short-lived token the diner sends to the restaurant over WhatsApp.

    Body: {restaurantId, clientToken, orderData, tableId?, areaId?, orderType?, campaign?}
    """
    body = parse_body(CreateWhatsAppTokenRequest, request.get_json(silent=True))

    with get_session() as db:
        record, whatsapp_number = create_order_token(
            db,
            restaurant_id=body.restaurant_id,
            client_token=body.client_token,
            order_data=body.order_data,
            default_whatsapp_number=current_app.config.get("WHATSAPP_BUSINESS_NUMBER", ""),
            ttl_minutes=current_app.config.get("WHATSAPP_TOKEN_TTL_MINUTES", 60),
            table_id=body.table_id,
            area_id=body.area_id,
            order_type=body.order_type.value,
            campaign=body.campaign,
        )
        response = {
            "success": True,
            "token": record.token,
            "whatsappNumber": whatsapp_number,
            "expiresAt": isoformat(record.expires_at),
        }

    return jsonify(response), HTTPStatus.OK


@whatsapp_bp.post("/crm/whatsapp/webhook")
def webhook():
    """
    Inbound message hook from the messaging provider.

    Accepts `{token, phone}` or the provider's `{messages: [...]}` shape.
    """
    payload = request.get_json(silent=True)

    with get_session() as db:
        receive_webhook(db, payload)

    return jsonify({"success": True}), HTTPStatus.OK
