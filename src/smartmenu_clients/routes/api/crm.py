"""
Visit and event tracking for the CRM.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from smartmenu_shared.db import get_session
from smartmenu_shared.logging_config import get_logger
from smartmenu_shared.schemas import TrackEventRequest, TrackVisitRequest
from smartmenu_shared.security_middleware import rate_limit
from smartmenu_shared.services.customer_service import track_event, track_visit
from smartmenu_shared.validation import parse_body

logger = get_logger(__name__)

crm_bp = Blueprint("client_crm", __name__)


@crm_bp.post("/crm/track-visit")
@rate_limit(max_requests=60, window_seconds=60, key_prefix="track-visit")
def track_visit_endpoint():
    """
    Record a menu visit for a diner.

    Body: {restaurantId, clientToken, clientFingerprint?, tableId?, areaId?,
    campaign?, qrCodeType?, deviceInfo?, referrer?}
    """
    body = parse_body(TrackVisitRequest, request.get_json(silent=True))

    with get_session() as db:
        visit, customer = track_visit(
            db,
            restaurant_id=body.restaurant_id,
            client_token=body.client_token,
            client_fingerprint=body.client_fingerprint,
            table_id=body.table_id,
            area_id=body.area_id,
            qr_code_type=body.qr_code_type.value,
            campaign=body.campaign,
            device_info=body.device_info,
            referrer=body.referrer,
        )
        response = {"success": True, "visitId": visit.id, "customerId": customer.id}

    return jsonify(response), HTTPStatus.OK


@crm_bp.post("/crm/track-event")
@rate_limit(max_requests=120, window_seconds=60, key_prefix="track-event")
def track_event_endpoint():
    """Record an analytics event (product view, add to cart, ...)."""
    body = parse_body(TrackEventRequest, request.get_json(silent=True))

    with get_session() as db:
        event = track_event(
            db,
            restaurant_id=body.restaurant_id,
            client_token=body.client_token,
            event_type=body.event_type,
            event_data=body.event_data,
            table_id=body.table_id,
            area_id=body.area_id,
        )
        response = {"success": True, "eventId": event.id}

    return jsonify(response), HTTPStatus.OK
