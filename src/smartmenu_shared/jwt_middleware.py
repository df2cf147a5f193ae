"""
JWT Middleware for Flask.

Loads the staff token on every request and exposes its claims.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flask import g, request

from smartmenu_shared.jwt_service import (
    InvalidTokenError,
    TokenExpiredError,
    decode_token,
    extract_token_from_request,
)

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)


def init_jwt_middleware(app: Flask) -> None:
    """
    Initialize JWT middleware for a Flask app.

    Sets up a before_request handler that validates the token, if any, and
    stores its claims in g.current_user.
    """

    @app.before_request
    def load_jwt_user():
        g.current_user = None
        g.jwt_token = None

        token = extract_token_from_request(request)
        if not token:
            return

        try:
            payload = decode_token(token, verify_type="access")
            g.current_user = payload
            g.jwt_token = token
        except TokenExpiredError:
            logger.debug(f"Expired token on {request.path}")
        except InvalidTokenError as e:
            logger.warning(f"Invalid token on {request.path}: {e}")


def get_current_user() -> dict[str, Any] | None:
    """Get current authenticated staff claims from request context."""
    return getattr(g, "current_user", None)


def get_employee_id() -> str | None:
    user = get_current_user()
    return user.get("employee_id") if user else None


def get_employee_role() -> str | None:
    user = get_current_user()
    return user.get("employee_role") if user else None


def get_restaurant_id() -> str | None:
    """Tenant of the authenticated staff member."""
    user = get_current_user()
    return user.get("restaurant_id") if user else None
