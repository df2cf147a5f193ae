"""Decorators for route protection using the staff JWT."""

from __future__ import annotations

from functools import wraps
from http import HTTPStatus

from flask import jsonify

from smartmenu_shared.constants import Roles
from smartmenu_shared.jwt_middleware import get_current_user, get_employee_role
from smartmenu_shared.serializers import error_response


def _is_authenticated() -> bool:
    user = get_current_user()
    return bool(user and user.get("employee_id") and user.get("restaurant_id"))


def login_required(f):
    """Require a staff token that names both the employee and their restaurant."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify(error_response("Authentication required")), HTTPStatus.UNAUTHORIZED
        return f(*args, **kwargs)

    return decorated_function


def admin_required(f):
    """Require an owner or admin token."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify(error_response("Authentication required")), HTTPStatus.UNAUTHORIZED
        if not Roles.is_admin(get_employee_role()):
            return jsonify(error_response("Admin role required")), HTTPStatus.FORBIDDEN
        return f(*args, **kwargs)

    return decorated_function
