"""
Clients API - Modular Blueprint Structure

All public endpoints are registered under the main api_bp blueprint.
"""

from flask import Blueprint

api_bp = Blueprint("client_api", __name__)

from smartmenu_clients.routes.api.crm import crm_bp  # noqa: E402
from smartmenu_clients.routes.api.table_orders import table_orders_bp  # noqa: E402
from smartmenu_clients.routes.api.whatsapp import whatsapp_bp  # noqa: E402

api_bp.register_blueprint(crm_bp)
api_bp.register_blueprint(whatsapp_bp)
api_bp.register_blueprint(table_orders_bp)

__all__ = ["api_bp"]
