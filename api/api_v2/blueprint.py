from flask import Blueprint

from api.api_v2.entities import entities_v2_bp


def create_api_v2_blueprint() -> Blueprint:
    """Create the /api/v2 blueprint (authenticated entity API)."""

    v2_bp = Blueprint("api_v2", __name__, url_prefix="/api/v2")
    v2_bp.register_blueprint(entities_v2_bp)
    return v2_bp
