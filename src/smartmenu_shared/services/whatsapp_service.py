"""
WhatsApp order handoff.

The menu creates a short token bound to the pending order payload and opens a
WhatsApp chat whose prefilled text carries "Order: <TOKEN>". The messaging
provider's webhook later delivers that text with the sender's phone, which
moves the token from pending to received exactly once.

The webhook is not signed yet; provider signature checks belong in the route
when a real provider is wired in.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta
from http import HTTPStatus
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from smartmenu_shared.constants import (
    WHATSAPP_TOKEN_ALPHABET,
    WHATSAPP_TOKEN_LENGTH,
    WHATSAPP_TOKEN_MAX_ATTEMPTS,
    OrderType,
    WhatsAppTokenStatus,
)
from smartmenu_shared.datetime_utils import utcnow
from smartmenu_shared.models import WhatsAppOrderToken
from smartmenu_shared.security import encrypt_string, mask_phone
from smartmenu_shared.services.customer_service import (
    check_seating_scope,
    get_customer_by_token,
    get_restaurant_or_404,
)
from smartmenu_shared.validation import (
    ConflictError,
    GoneError,
    NotFoundError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_ORDER_TOKEN_RE = re.compile(r"Order:\s*([A-Za-z0-9]+)")


def generate_token() -> str:
    return "".join(secrets.choice(WHATSAPP_TOKEN_ALPHABET) for _ in range(WHATSAPP_TOKEN_LENGTH))


def _unused_token(db: Session) -> str:
    for _ in range(WHATSAPP_TOKEN_MAX_ATTEMPTS):
        token = generate_token()
        taken = db.execute(
            select(WhatsAppOrderToken.id).where(WhatsAppOrderToken.token == token)
        ).scalar_one_or_none()
        if taken is None:
            return token
        logger.warning("WhatsApp token collision, retrying")
    raise ServiceError("Could not allocate an order token")


def create_order_token(
    db: Session,
    restaurant_id: str,
    client_token: str,
    order_data: dict[str, Any],
    default_whatsapp_number: str,
    ttl_minutes: int = 60,
    table_id: str | None = None,
    area_id: str | None = None,
    order_type: str = OrderType.DINE_IN.value,
    campaign: str | None = None,
) -> tuple[WhatsAppOrderToken, str]:
    """
    Store a pending order payload behind a fresh token.

    Returns the token record and the WhatsApp number the diner should message:
    the restaurant's own number when set, the platform number otherwise.
    """
    restaurant = get_restaurant_or_404(db, restaurant_id)
    check_seating_scope(db, restaurant_id, table_id, area_id)

    whatsapp_number = restaurant.whatsapp_number or default_whatsapp_number
    if not whatsapp_number:
        raise ServiceError(
            "WhatsApp ordering is not configured", status=HTTPStatus.SERVICE_UNAVAILABLE
        )

    customer = get_customer_by_token(db, restaurant_id, client_token)
    record = WhatsAppOrderToken(
        restaurant_id=restaurant_id,
        token=_unused_token(db),
        customer_id=customer.id if customer else None,
        table_id=table_id,
        area_id=area_id,
        order_type=OrderType(order_type).value,
        campaign=campaign,
        order_data=order_data,
        status=WhatsAppTokenStatus.PENDING.value,
        phone_shared=False,
        expires_at=utcnow() + timedelta(minutes=ttl_minutes),
    )
    db.add(record)
    db.flush()
    logger.info(
        "WhatsApp order token created",
        extra={"restaurant_id": restaurant_id, "token_id": record.id},
    )
    return record, whatsapp_number


def parse_webhook_payload(payload: dict[str, Any] | None) -> tuple[str | None, str | None]:
    """
    Extract (token, phone) from a webhook body.

    Accepts the flat `{token, phone}` shape and the provider shape
    `{messages: [{from, text: {body: "... Order: <TOKEN>"}}]}`.
    """
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    token = payload.get("token")
    phone = payload.get("phone")

    messages = payload.get("messages")
    if isinstance(messages, list) and messages and isinstance(messages[0], dict):
        message = messages[0]
        if not phone:
            phone = message.get("from")
        if not token:
            text = message.get("text") or {}
            body = text.get("body") if isinstance(text, dict) else None
            match = _ORDER_TOKEN_RE.search(body or "")
            if match:
                token = match.group(1)

    token = token.strip().upper() if isinstance(token, str) and token.strip() else None
    phone = phone.strip() if isinstance(phone, str) and phone.strip() else None
    return token, phone


def receive_webhook(
    db: Session, payload: dict[str, Any] | None, now: datetime | None = None
) -> WhatsAppOrderToken:
    """
    Attach the sender's phone to a pending token and mark it received.

    Raises:
        ValidationError: token or phone missing
        NotFoundError: unknown token
        GoneError: token expired
        ConflictError: token already received
    """
    token, phone = parse_webhook_payload(payload)
    if not token or not phone:
        raise ValidationError("Missing token or phone")

    record = db.execute(
        select(WhatsAppOrderToken).where(WhatsAppOrderToken.token == token)
    ).scalar_one_or_none()
    if record is None:
        raise NotFoundError("Token not found")

    now = now or utcnow()
    if record.status != WhatsAppTokenStatus.PENDING.value:
        raise ConflictError("Token already used")
    if record.is_expired(now):
        raise GoneError("Token expired")

    # Conditional update keeps the pending -> received move one-shot under races.
    result = db.execute(
        update(WhatsAppOrderToken)
        .where(
            WhatsAppOrderToken.id == record.id,
            WhatsAppOrderToken.status == WhatsAppTokenStatus.PENDING.value,
        )
        .values(
            status=WhatsAppTokenStatus.RECEIVED.value,
            phone_encrypted=encrypt_string(phone),
            processed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError("Token already used")

    db.refresh(record)
    logger.info(
        "WhatsApp order token received",
        extra={
            "restaurant_id": record.restaurant_id,
            "token_id": record.id,
            "phone": mask_phone(phone),
        },
    )
    return record
