"""
Security middleware: rate limiting and response security headers.
"""

import os
import threading
import time
from collections import defaultdict
from collections.abc import Callable
from functools import wraps
from http import HTTPStatus

from flask import current_app, jsonify, request

from smartmenu_shared.serializers import error_response


def get_client_ip() -> str:
    """
    Get real client IP considering proxies.

    Returns:
        Client IP address string
    """
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        # X-Forwarded-For: client, proxy1, proxy2
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()

    return request.remote_addr or "unknown"


class RateLimiter:
    """Simple in-memory rate limiter with IP awareness."""

    def __init__(self):
        self.requests: dict[str, list] = defaultdict(list)
        self._lock = threading.Lock()

    def is_allowed(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """
        Check if request is allowed based on rate limit.

        Args:
            key: Unique identifier (e.g., IP address + endpoint)
            max_requests: Maximum requests allowed in window
            window_seconds: Time window in seconds

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        now = time.time()
        cutoff = now - window_seconds

        with self._lock:
            self.requests[key] = [t for t in self.requests[key] if t > cutoff]
            remaining = max_requests - len(self.requests[key])

            if remaining <= 0:
                return False, 0

            self.requests[key].append(now)
            return True, remaining - 1

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()


_rate_limiter = RateLimiter()


def _testing_mode() -> bool:
    if current_app and current_app.config.get("TESTING"):
        return True
    return os.getenv("TESTING", "").lower() in {"1", "true", "yes", "on"}


def rate_limit(max_requests: int = 30, window_seconds: int = 60, key_prefix: str = ""):
    """
    Decorator to rate limit public endpoints per client IP and path.

    Disabled when the app runs with TESTING enabled.
    """

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if _testing_mode():
                return f(*args, **kwargs)

            key = f"{get_client_ip()}:{key_prefix}{request.path}"
            is_allowed, remaining = _rate_limiter.is_allowed(key, max_requests, window_seconds)

            if not is_allowed:
                body = error_response("Too many requests. Try again later.")
                body["retry_after"] = window_seconds
                response = jsonify(body)
                response.status_code = HTTPStatus.TOO_MANY_REQUESTS
                response.headers["Retry-After"] = str(window_seconds)
                response.headers["X-RateLimit-Limit"] = str(max_requests)
                response.headers["X-RateLimit-Remaining"] = "0"
                return response

            response = current_app.make_response(f(*args, **kwargs))
            response.headers["X-RateLimit-Limit"] = str(max_requests)
            response.headers["X-RateLimit-Remaining"] = str(remaining)
            return response

        return decorated_function

    return decorator


def configure_security_headers(app):
    """
    Add security headers to every response.

    Both apps only serve JSON, redirects and PNG images, so the policy is
    locked down to nothing but same-origin images.
    """

    @app.after_request
    def add_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; img-src 'self' data:; frame-ancestors 'none'"
        )

        # Cart and order state change constantly; never let a proxy cache them.
        if "/api/" in request.path:
            response.headers["Cache-Control"] = "no-store"

        return response
