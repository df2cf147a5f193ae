"""
Factory for the staff-facing Flask application.

Staff authenticate with a JWT issued by the identity service; every query is
scoped to the restaurant named in the token.
Run with `flask --app smartmenu_employees.app:create_app run`.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from smartmenu_employees.routes.api import api_bp
from smartmenu_shared.config import load_config, validate_required_env_vars
from smartmenu_shared.db import init_db, init_engine
from smartmenu_shared.error_handlers import register_error_handlers
from smartmenu_shared.jwt_middleware import init_jwt_middleware
from smartmenu_shared.logging_config import configure_logging
from smartmenu_shared.models import Base
from smartmenu_shared.security_middleware import configure_security_headers
from smartmenu_shared.services.restaurant_cache import restaurant_cache

logger = logging.getLogger(__name__)


def create_app(overrides: dict[str, Any] | None = None) -> Flask:
    """
    Build the Flask application that powers the staff API.
    """
    # Validate all required environment variables (fail-fast)
    validate_required_env_vars()

    app = Flask(__name__)
    config = load_config("smartmenu-employees")

    configure_logging(config.app_name, config.log_level)

    init_engine(config)
    init_db(Base.metadata)

    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_NAME"] = config.app_name
    app.config["APP_URL"] = config.app_url
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["STORAGE_BUCKET_QR"] = config.storage_bucket_qr
    app.config["JWT_ACCESS_TOKEN_EXPIRES_HOURS"] = config.jwt_access_token_expires_hours
    if overrides:
        app.config.update(overrides)

    restaurant_cache.ttl_seconds = config.restaurant_cache_ttl_seconds

    init_jwt_middleware(app)
    configure_security_headers(app)
    register_error_handlers(app)

    num_proxies = int(os.getenv("NUM_PROXIES", "0"))
    if num_proxies > 0:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=num_proxies,
            x_proto=num_proxies,
            x_host=num_proxies,
            x_port=num_proxies,
        )

    app.register_blueprint(api_bp, url_prefix="/api")

    raw_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
    allowed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    if config.debug_mode or not allowed_origins:
        allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    CORS(
        app,
        resources={r"/api/*": {"origins": allowed_origins, "supports_credentials": True}},
        supports_credentials=True,
    )

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "service": config.app_name}), 200

    logger.info("Employees app ready")
    return app
