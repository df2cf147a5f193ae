"""
Factory for the customer-facing Flask application.

Diners are anonymous: requests carry the browser's client token, no login.
Run with `flask --app smartmenu_clients.app:create_app run`.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from smartmenu_clients.routes.api import api_bp
from smartmenu_clients.routes.web import web_bp
from smartmenu_shared.config import load_config, validate_required_env_vars
from smartmenu_shared.db import init_db, init_engine
from smartmenu_shared.error_handlers import register_error_handlers
from smartmenu_shared.logging_config import configure_logging
from smartmenu_shared.models import Base
from smartmenu_shared.security_middleware import configure_security_headers


def create_app(overrides: dict[str, Any] | None = None) -> Flask:
    """
    Build and configure the Flask app for clients.
    """
    # Validate all required environment variables (fail-fast)
    validate_required_env_vars()

    app = Flask(__name__)
    config = load_config("smartmenu-clients")

    configure_logging(config.app_name, config.log_level)

    init_engine(config)
    init_db(Base.metadata)

    app.config["SECRET_KEY"] = config.secret_key
    app.config["APP_NAME"] = config.app_name
    app.config["APP_URL"] = config.app_url
    app.config["DEBUG_MODE"] = config.debug_mode
    app.config["WHATSAPP_BUSINESS_NUMBER"] = config.whatsapp_business_number
    app.config["WHATSAPP_TOKEN_TTL_MINUTES"] = config.whatsapp_token_ttl_minutes
    if overrides:
        app.config.update(overrides)

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
    app.register_blueprint(web_bp)

    raw_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
    allowed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    if config.debug_mode or not allowed_origins:
        allowed_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "service": config.app_name}), 200

    return app
