"""
JWT Service - staff token generation and validation.

Tokens are issued by the identity service in front of the admin panel; this
module only needs to read them. `create_access_token` exists for tooling and
tests that need to mint a token with the same claims.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from flask import Request, current_app

JWT_ALGORITHM = "HS256"


def get_access_token_expiry() -> int:
    try:
        return current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES_HOURS", 24)
    except RuntimeError:
        return int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "24"))


class JWTError(Exception):
    """Base exception for JWT errors."""

    def __init__(self, message: str, status: int = 401):
        self.message = message
        self.status = status
        super().__init__(message)


class TokenExpiredError(JWTError):
    """Token has expired."""

    def __init__(self):
        super().__init__("Token expired", 401)


class InvalidTokenError(JWTError):
    """Token is invalid or malformed."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, 401)


def get_jwt_secret() -> str:
    """Get JWT secret key from config or environment."""
    try:
        secret = current_app.config.get("SECRET_KEY")
        if secret:
            return secret
    except RuntimeError:
        pass

    secret = os.getenv("JWT_SECRET_KEY", os.getenv("SECRET_KEY"))
    if not secret:
        raise RuntimeError("JWT_SECRET_KEY or SECRET_KEY must be configured")
    return secret


def create_access_token(
    employee_id: str,
    restaurant_id: str,
    employee_role: str,
    expires_hours: int | None = None,
) -> str:
    """
    Create a JWT access token for a staff member.

    Args:
        employee_id: Staff user ID in the identity provider
        restaurant_id: Tenant the staff member works for
        employee_role: owner, admin or staff
        expires_hours: Token expiration in hours (default: 24)

    Returns:
        Encoded JWT token string
    """
    secret = get_jwt_secret()
    expires = expires_hours or get_access_token_expiry()

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(employee_id),
        "iat": now,
        "exp": now + timedelta(hours=expires),
        "type": "access",
        "employee_id": employee_id,
        "restaurant_id": restaurant_id,
        "employee_role": employee_role,
    }

    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, verify_type: str | None = None) -> dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string
        verify_type: Expected token type ('access')

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        InvalidTokenError: If token is invalid
    """
    secret = get_jwt_secret()

    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(str(e))

    if verify_type and payload.get("type") != verify_type:
        raise InvalidTokenError(f"Expected {verify_type} token")
    if not payload.get("restaurant_id"):
        raise InvalidTokenError("Token carries no restaurant")

    return payload


def extract_token_from_request(request: Request) -> str | None:
    """
    Extract JWT token from request.

    Checks the Authorization header (Bearer token) first, then the
    X-Access-Token header, then the access_token cookie.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]

    token_header = request.headers.get("X-Access-Token")
    if token_header:
        return token_header

    return request.cookies.get("access_token")
