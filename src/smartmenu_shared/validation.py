"""
Input validation utilities and the service error hierarchy.
"""

from __future__ import annotations

from http import HTTPStatus

from pydantic import BaseModel


class ValidationError(Exception):
    """Raised when validation fails."""

    pass


class ServiceError(Exception):
    """
    Base error raised by services. Carries the HTTP status the route should answer
    with, plus optional extra fields for the JSON body.
    """

    status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status: HTTPStatus | None = None, **extra) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.extra = extra


class NotFoundError(ServiceError):
    status = HTTPStatus.NOT_FOUND


class TenantMismatchError(ServiceError):
    status = HTTPStatus.FORBIDDEN


class TableClosedError(ServiceError):
    """The table is not accepting orders (cleaning, out of service, stale session)."""

    status = HTTPStatus.FORBIDDEN


class ConflictError(ServiceError):
    status = HTTPStatus.CONFLICT


class GoneError(ServiceError):
    status = HTTPStatus.GONE


def require_fields(payload: dict, *names: str) -> None:
    """Reject payloads missing any of the given keys (None or empty string)."""
    missing = [name for name in names if payload.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def parse_body(schema: type[BaseModel], payload: dict | None) -> BaseModel:
    """
    Validate a JSON body against a request schema.

    Missing required fields are reported with the wire (camelCase) names the
    client sent, the same way require_fields() does.
    """
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    required = [
        field.alias or name
        for name, field in schema.model_fields.items()
        if field.is_required()
    ]
    require_fields(payload, *required)
    return schema.model_validate(payload)


def validate_pagination(page: int | None, limit: int | None) -> tuple[int, int]:
    """
    Validate and normalize pagination parameters.

    Returns: (page, limit) tuple with validated values.
    """
    from smartmenu_shared.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

    if page is None or page < 1:
        page = 1

    if limit is None or limit < 1:
        limit = DEFAULT_PAGE_SIZE
    elif limit > MAX_PAGE_SIZE:
        limit = MAX_PAGE_SIZE

    return page, limit
