"""
Secure Access API - Modular Blueprint Structure

Each module handles one resource; the parent blueprint is mounted at /api.
"""

from flask import Blueprint

# Create main API blueprint
api_bp = Blueprint("api", __name__)

# Import and register sub-blueprints
from .auth import auth_bp  # noqa: E402
from .health import health_bp  # noqa: E402
from .keys import keys_bp  # noqa: E402
from .shipments import shipments_bp  # noqa: E402
from .users import users_bp  # noqa: E402
from .visitors import visitors_bp  # noqa: E402

api_bp.register_blueprint(auth_bp)
api_bp.register_blueprint(users_bp)
api_bp.register_blueprint(visitors_bp)
api_bp.register_blueprint(shipments_bp)
api_bp.register_blueprint(keys_bp)
api_bp.register_blueprint(health_bp)

__all__ = ["api_bp"]
