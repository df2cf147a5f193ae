"""
Employees API - Modular Blueprint Structure

Each module handles one resource; all are registered on api_bp.
"""

from flask import Blueprint

api_bp = Blueprint("api", __name__)

from .areas import areas_bp  # noqa: E402
from .customers import customers_bp  # noqa: E402
from .restaurant import restaurant_bp  # noqa: E402
from .table_orders import table_orders_bp  # noqa: E402
from .tables import tables_bp  # noqa: E402

api_bp.register_blueprint(areas_bp)
api_bp.register_blueprint(tables_bp)
api_bp.register_blueprint(table_orders_bp)
api_bp.register_blueprint(customers_bp)
api_bp.register_blueprint(restaurant_bp)

__all__ = ["api_bp"]
